#    symbolizer.py
#        Answers the questions a debugger asks to the debug information: which function
#        and which source line is at an address, and where a named variable lives.
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

__all__ = ['Symbolizer', 'SourceLocation', 'FunctionRange']

import logging
from dataclasses import dataclass

from sortedcontainers import SortedKeyList  # type: ignore

from dwarfscope.dwarf.dwarf_info import DwarfInfo, UnitErrorPolicy
from dwarfscope.dwarf.compilation_unit import CompilationUnit
from dwarfscope.dwarf.die import DIE
from dwarfscope.dwarf.line_program import LineProgram, LineTable
from dwarfscope.dwarf.constants import Tag, At
from dwarfscope.core.logging import DUMPDATA_LOGLEVEL
from dwarfscope.tools.typing import *


@dataclass(frozen=True)
class SourceLocation:
    address: int
    """The address that was looked up"""
    row_address: int
    """Address of the line table row that covers the address"""
    path: Optional[str]
    line: int
    column: int
    function: Optional[str] = None


@dataclass(frozen=True)
class FunctionRange:
    low: int
    high: int
    die: DIE


class Symbolizer:
    """
    Address and name lookups over every compilation unit of a DwarfInfo.
    The indexes are built on first use and cover the units that could be decoded.
    """

    NAMED_ORIGIN_ATTRIBUTES = (At.DW_AT_specification, At.DW_AT_abstract_origin)

    dwarfinfo: DwarfInfo
    on_error: Optional[UnitErrorPolicy]
    logger: logging.Logger

    _functions: Optional[SortedKeyList]
    _names: Optional[Dict[str, List[DIE]]]
    _line_tables: Optional[List[Tuple[LineProgram, LineTable]]]

    def __init__(self, dwarfinfo: DwarfInfo, on_error: Optional[UnitErrorPolicy] = None) -> None:
        self.dwarfinfo = dwarfinfo
        self.on_error = on_error
        self.logger = logging.getLogger(self.__class__.__name__)
        self._functions = None
        self._names = None
        self._line_tables = None

    def _iter_units(self) -> Iterator[CompilationUnit]:
        return self.dwarfinfo.iter_compilation_units(on_error=self.on_error)

    def _get_through_origins(self, die: DIE, getter: Callable[[DIE], Optional[str]]) -> Optional[str]:
        """A definition made out of its declaration borrows the names of the declaration"""
        visited: Set[int] = set()
        current: Optional[DIE] = die
        while current is not None and current.offset not in visited:
            visited.add(current.offset)
            value = getter(current)
            if value is not None:
                return value
            origin: Optional[DIE] = None
            for attribute in self.NAMED_ORIGIN_ATTRIBUTES:
                if current.has_attribute(attribute):
                    origin = current.get_die_from_attribute(attribute)
                    break
            current = origin
        return None

    def get_die_name(self, die: DIE) -> Optional[str]:
        return self._get_through_origins(die, DIE.get_name)

    def get_die_linkage_name(self, die: DIE) -> Optional[str]:
        return self._get_through_origins(die, DIE.get_linkage_name)

    def _build_function_index(self) -> SortedKeyList:
        functions = SortedKeyList(key=lambda f: (f.low, f.high))
        for unit in self._iter_units():
            for die in unit.iter_dies():
                if die.tag != Tag.DW_TAG_subprogram:
                    continue
                for low, high in die.get_address_ranges():
                    functions.add(FunctionRange(low=low, high=high, die=die))
                    if self.logger.isEnabledFor(DUMPDATA_LOGLEVEL):  # pragma: no cover
                        self.logger.log(DUMPDATA_LOGLEVEL, f"Function {die} covers 0x{low:x}-0x{high:x}")
        self.logger.debug(f"Indexed {len(functions)} function ranges")
        return functions

    def _get_functions(self) -> SortedKeyList:
        if self._functions is None:
            self._functions = self._build_function_index()
        return self._functions

    def find_function(self, address: int) -> Optional[DIE]:
        """The subprogram whose code includes the address. The one that starts last if more than one does"""
        functions = self._get_functions()
        index = functions.bisect_key_right((address, float('inf'))) - 1
        while index >= 0:
            candidate = cast(FunctionRange, functions[index])
            if candidate.low <= address < candidate.high:
                return candidate.die
            index -= 1
        return None

    def find_function_name(self, address: int) -> Optional[str]:
        die = self.find_function(address)
        if die is None:
            return None
        return self.get_die_name(die)

    def _get_line_tables(self) -> List[Tuple[LineProgram, LineTable]]:
        if self._line_tables is None:
            tables: List[Tuple[LineProgram, LineTable]] = []
            for unit in self._iter_units():
                program = unit.get_line_program()
                if program is not None:
                    tables.append((program, program.get_line_table()))
            self._line_tables = tables
        return self._line_tables

    def find_line(self, address: int) -> Optional[SourceLocation]:
        """The source location of the instruction at an address. None if no line table covers it"""
        for program, table in self._get_line_tables():
            row = table.lookup(address)
            if row is None:
                continue
            return SourceLocation(
                address=address,
                row_address=row.address,
                path=program.get_file_path(row.file_index),
                line=row.line,
                column=row.column,
                function=self.find_function_name(address)
            )
        return None

    def _build_name_index(self) -> Dict[str, List[DIE]]:
        names: Dict[str, List[DIE]] = {}
        for unit in self._iter_units():
            for die in unit.iter_dies():
                if die.is_root():
                    continue
                for name in (self.get_die_name(die), self.get_die_linkage_name(die)):
                    if name is None:
                        continue
                    entries = names.setdefault(name, [])
                    if die not in entries:
                        entries.append(die)
        self.logger.debug(f"Indexed {len(names)} names")
        return names

    def find_symbol(self, name: str) -> List[DIE]:
        """Every entry named by name or by linkage name, in section order"""
        if self._names is None:
            self._names = self._build_name_index()
        return list(self._names.get(name, []))

    def get_variable_address(self, die: DIE) -> Optional[int]:
        """Address of a variable with a static storage. None for locals, registers and optimized out variables"""
        return die.cu.get_static_address(die)

    def find_variable_address(self, name: str) -> Optional[int]:
        """Address of the first variable of that name with a static location"""
        for die in self.find_symbol(name):
            if die.tag != Tag.DW_TAG_variable:
                continue
            address = self.get_variable_address(die)
            if address is not None:
                return address
        return None
