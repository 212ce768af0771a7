#    dwarf_info.py
#        Entry point of the reader. Finds the compilation units of .debug_info and
#        gives access to the strings, abbreviations and line programs they refer to.
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

__all__ = ['DwarfInfo', 'DwarfInfoConfig', 'UnitErrorPolicy', 'DEFAULT_CONFIG']

import os
import json
import bisect
import logging
import enum
from copy import copy

from dwarfscope import tools
from dwarfscope.core.sections import BaseSectionProvider, SectionRange
from dwarfscope.dwarf.byte_cursor import ByteCursor
from dwarfscope.dwarf.abbreviation import AbbreviationTable
from dwarfscope.dwarf.compilation_unit import CompilationUnit, read_unit_extent
from dwarfscope.dwarf.die import DIE
from dwarfscope.dwarf.line_program import LineProgram
from dwarfscope.dwarf.constants import At
from dwarfscope.exceptions import (UnitError, CorruptSectionLengthError, BadStringOffsetError, MalformedAbbrevError,
                                   MalformedLineProgramError, DanglingReferenceError, OutOfBoundsError)
from dwarfscope.tools.typing import *


class UnitErrorPolicy(enum.Enum):
    """What to do when a compilation unit cannot be decoded"""
    ABORT = 'abort'
    SKIP = 'skip'


class DwarfInfoConfig(TypedDict, total=False):
    """The reader configuration, loadable from json"""
    strict_forms: bool
    unit_error_policy: str
    cache_abbreviations: bool
    cache_strings: bool


DEFAULT_CONFIG: DwarfInfoConfig = {
    'strict_forms': True,
    'unit_error_policy': 'abort',
    'cache_abbreviations': True,
    'cache_strings': True,
}

VisitCallback = Callable[[CompilationUnit], None]


class DwarfInfo:
    """
    Index of the debugging information of an image. Nothing is decoded at construction.
    Units are found while iterating and their tree of entries is decoded when they are visited.
    """

    provider: BaseSectionProvider
    config: DwarfInfoConfig
    logger: logging.Logger
    error_policy: UnitErrorPolicy

    _units: Dict[int, CompilationUnit]
    _unit_extents: Optional[List[Tuple[int, int]]]
    _abbrev_tables: Dict[int, AbbreviationTable]
    _strings: Dict[Tuple[str, int], str]
    _reported_versions: Set[int]

    def __init__(self,
                 provider: BaseSectionProvider,
                 input_config: Optional[Union[str, DwarfInfoConfig]] = None,
                 additional_config: Optional[DwarfInfoConfig] = None
                 ) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)
        self.provider = provider
        self.config = copy(DEFAULT_CONFIG)

        if input_config is not None:
            if isinstance(input_config, str):
                if not os.path.isfile(input_config):
                    raise FileNotFoundError(f"Given config does not exist: {input_config}")

                self.logger.debug('Loading user configuration file: "%s"' % input_config)
                with open(input_config) as f:
                    try:
                        user_cfg = json.loads(f.read())
                    except json.JSONDecodeError as e:
                        raise ValueError("Invalid configuration JSON. %s" % e)
                if not isinstance(user_cfg, dict):
                    raise ValueError("Configuration file must contain a JSON object")
                tools.update_dict_recursive(cast(Dict[Any, Any], self.config), cast(Dict[Any, Any], user_cfg))
            elif isinstance(input_config, dict):
                tools.update_dict_recursive(cast(Dict[Any, Any], self.config), cast(Dict[Any, Any], input_config))
            else:
                raise ValueError(f"Unsupported configuration of type {input_config.__class__.__name__}")

        if additional_config is not None:
            tools.update_dict_recursive(cast(Dict[Any, Any], self.config), cast(Dict[Any, Any], additional_config))

        self.validate_config()
        self.error_policy = UnitErrorPolicy(self.config['unit_error_policy'])

        self._units = {}
        self._unit_extents = None
        self._abbrev_tables = {}
        self._strings = {}
        self._reported_versions = set()

    def validate_config(self) -> None:
        for key in self.config:
            if key not in DEFAULT_CONFIG:
                raise ValueError(f"Unknown configuration key {key}")

        for key in ('strict_forms', 'cache_abbreviations', 'cache_strings'):
            if not isinstance(self.config[key], bool):     # type: ignore
                raise ValueError(f"Configuration {key} must be a boolean")

        valid_policies = [policy.value for policy in UnitErrorPolicy]
        if self.config['unit_error_policy'] not in valid_policies:
            raise ValueError(f"Configuration unit_error_policy must be one of {valid_policies}")

    def is_little_endian(self) -> bool:
        return self.provider.is_little_endian()

    def section(self, name: str) -> Optional[SectionRange]:
        """The bytes of a section. None if the image does not have it"""
        return self.provider.section_bytes(name)

    def make_cursor(self, section: SectionRange) -> ByteCursor:
        """A cursor over a section. Offsets given to the cursor are section offsets"""
        return ByteCursor.from_section(section, little_endian=self.is_little_endian())

    def _make_section_cursor(self, name: str) -> ByteCursor:
        section = self.section(name)
        if section is None:
            return ByteCursor(b'', little_endian=self.is_little_endian())  # Missing section reads as empty
        return self.make_cursor(section)

    def has_debug_info(self) -> bool:
        section = self.section('.debug_info')
        return section is not None and len(section) > 0

    @property
    def debug_info_data(self) -> Optional[SectionRange]:
        return self.section('.debug_info')

    @property
    def abbreviation_data(self) -> Optional[SectionRange]:
        return self.section('.debug_abbrev')

    @property
    def debug_strings_data(self) -> Optional[SectionRange]:
        return self.section('.debug_str')

    def report_unsupported_version(self, version: int) -> None:
        """Warns once per version number"""
        if version not in self._reported_versions:
            self._reported_versions.add(version)
            self.logger.warning(f"Found compilation unit(s) of DWARF version {version}. Only versions 2 to 5 are supported")

    def _get_unit_at(self, offset: int) -> CompilationUnit:
        unit = self._units.get(offset, None)
        if unit is None:
            cursor = self._make_section_cursor('.debug_info')
            cursor.seek(offset)
            unit = CompilationUnit(self, cursor, strict=self.config['strict_forms'])
            self._units[offset] = unit
        return unit

    def iter_compilation_units(self,
                               on_error: Optional[UnitErrorPolicy] = None,
                               errors: Optional[List[UnitError]] = None
                               ) -> Generator[CompilationUnit, None, None]:
        """
        Yields every compilation unit in section order, each with its tree of entries decoded.
        With the SKIP policy, a unit that fails to decode is reported and the iteration
        continues with the next one. With ABORT, the error is raised.
        """
        policy = tools.get_default_val(on_error, self.error_policy)
        cursor = self._make_section_cursor('.debug_info')
        offset = cursor.start_offset
        end_offset = cursor.end_offset

        while offset < end_offset:
            try:
                unit = self._get_unit_at(offset)
                unit.build_tree()
            except UnitError as e:
                if policy == UnitErrorPolicy.ABORT:
                    raise
                tools.log_exception(self.logger, e, f"Skipping compilation unit at 0x{offset:x}", str_level=logging.WARNING)
                if errors is not None:
                    errors.append(e)
                if isinstance(e, CorruptSectionLengthError):
                    break   # Nothing after a bad length can be trusted
                cursor.seek(offset)
                unit_offset, total_size = read_unit_extent(cursor)
                offset = unit_offset + total_size
                continue

            yield unit
            offset = unit.end_offset

    def for_each_compilation_unit(self,
                                  visit: VisitCallback,
                                  on_error: Optional[UnitErrorPolicy] = None,
                                  errors: Optional[List[UnitError]] = None
                                  ) -> None:
        """Calls visit with every compilation unit, in section order"""
        for unit in self.iter_compilation_units(on_error=on_error, errors=errors):
            visit(unit)

    def get_compilation_units(self,
                              on_error: Optional[UnitErrorPolicy] = None,
                              errors: Optional[List[UnitError]] = None
                              ) -> List[CompilationUnit]:
        return list(self.iter_compilation_units(on_error=on_error, errors=errors))

    def _get_unit_extents(self) -> List[Tuple[int, int]]:
        """(offset, end) of every unit, from the length fields only"""
        if self._unit_extents is None:
            extents: List[Tuple[int, int]] = []
            cursor = self._make_section_cursor('.debug_info')
            while not cursor.at_end():
                offset, total_size = read_unit_extent(cursor)
                extents.append((offset, offset + total_size))
                cursor.seek(offset + total_size)
            self._unit_extents = extents
        return self._unit_extents

    def get_compilation_unit_containing(self, offset: int) -> Optional[CompilationUnit]:
        """The unit whose bytes include the given .debug_info offset. None if no unit does"""
        extents = self._get_unit_extents()
        index = bisect.bisect_right(extents, (offset, float('inf'))) - 1
        if index < 0:
            return None
        unit_offset, unit_end = extents[index]
        if offset >= unit_end:
            return None
        return self._get_unit_at(unit_offset)

    def get_die_at_offset(self, offset: int) -> DIE:
        """Find an entry from its .debug_info offset, in whichever unit holds it"""
        unit = self.get_compilation_unit_containing(offset)
        if unit is None:
            raise DanglingReferenceError(f"Offset 0x{offset:x} is not inside any compilation unit")
        return unit.get_die_at_offset(offset)

    def get_abbrev_table(self, offset: int, unit_offset: Optional[int] = None) -> AbbreviationTable:
        """The abbreviation table at an offset of .debug_abbrev. Units that share an offset share the table"""
        table = self._abbrev_tables.get(offset, None)
        if table is not None:
            return table

        cursor = self._make_section_cursor('.debug_abbrev')
        if offset >= cursor.end_offset:
            raise MalformedAbbrevError(f"Abbreviation offset 0x{offset:x} is outside of .debug_abbrev "
                                       f"(0x{cursor.end_offset:x} bytes)", unit_offset)
        cursor.seek(offset)
        table = AbbreviationTable.parse(cursor, unit_offset)
        if self.config['cache_abbreviations']:
            self._abbrev_tables[offset] = table
        return table

    def _read_string(self, section_name: str, offset: int) -> str:
        key = (section_name, offset)
        text = self._strings.get(key, None)
        if text is not None:
            return text

        section = self.section(section_name)
        if section is None:
            raise BadStringOffsetError(f"String at 0x{offset:x} is referred, but there is no {section_name} section")
        if offset < 0 or offset >= len(section):
            raise BadStringOffsetError(f"Offset 0x{offset:x} is outside of {section_name} (0x{len(section):x} bytes)")
        cursor = self.make_cursor(section)
        cursor.seek(offset)
        try:
            data = cursor.read_cstring()
        except OutOfBoundsError as e:
            raise BadStringOffsetError(f"String at 0x{offset:x} of {section_name} has no terminator") from e

        text = data.decode('utf8', errors='replace')
        if self.config['cache_strings']:
            self._strings[key] = text
        return text

    def resolve_string(self, offset: int) -> str:
        """Text at an offset of .debug_str"""
        return self._read_string('.debug_str', offset)

    def resolve_line_string(self, offset: int) -> str:
        """Text at an offset of .debug_line_str"""
        return self._read_string('.debug_line_str', offset)

    def get_line_program(self, unit: CompilationUnit) -> Optional[LineProgram]:
        """Decode the header of the line program of a unit. None if the unit has no DW_AT_stmt_list"""
        stmt_list = unit.get_top_die().get_int(At.DW_AT_stmt_list)
        if stmt_list is None:
            return None

        section = self.section('.debug_line')
        if section is None:
            raise MalformedLineProgramError(f"{unit} refers to a line program, but there is no .debug_line section")
        cursor = self.make_cursor(section)
        cursor.seek(stmt_list)
        return LineProgram.parse(cursor, dwarfinfo=self, comp_dir=unit.get_comp_dir())

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__} of {self.provider.__class__.__name__}>'
