#    compilation_unit.py
#        One compilation unit of .debug_info: its header, its abbreviation table
#        and the tree of entries that describes it.
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

__all__ = ['CompilationUnit', 'read_unit_extent']

import logging

from dwarfscope.dwarf.byte_cursor import ByteCursor
from dwarfscope.dwarf.abbreviation import AbbreviationTable
from dwarfscope.dwarf.attribute import AttributeDecoder, AttributeValue, UnitEncoding, ValueKind
from dwarfscope.dwarf.die import DIE
from dwarfscope.dwarf.die_tree_builder import DieTreeBuilder
from dwarfscope.dwarf.line_program import LineProgram, LineTable
from dwarfscope.dwarf.location import get_static_address
from dwarfscope.dwarf.ranges import read_debug_ranges, read_rnglist, get_rnglists_header_size
from dwarfscope.dwarf.constants import At, Form, UnitType, format_enum_value
from dwarfscope.exceptions import (BadUnitHeaderError, CorruptSectionLengthError, DanglingReferenceError,
                                   OutOfBoundsError, BadStringOffsetError)
from dwarfscope.tools.typing import *

if TYPE_CHECKING:
    from dwarfscope.dwarf.dwarf_info import DwarfInfo

SUPPORTED_VERSIONS = (2, 3, 4, 5)
SUPPORTED_ADDRESS_SIZES = (4, 8)


def read_unit_extent(cursor: ByteCursor) -> Tuple[int, int]:
    """
    Read the length field of the unit at the cursor position and return (offset, total size).
    The cursor is left after the length field.
    """
    offset = cursor.tell()
    if cursor.remaining() < 4:
        raise CorruptSectionLengthError(f"{cursor.remaining()} trailing bytes cannot hold a unit length", offset)
    unit_length = cursor.read_u32()
    length_field_size = 4
    if unit_length == 0xffffffff:
        if cursor.remaining() < 8:
            raise CorruptSectionLengthError("64-bit unit length is cut by the end of the section", offset)
        unit_length = cursor.read_u64()
        length_field_size = 12
    elif unit_length >= 0xfffffff0:
        raise CorruptSectionLengthError(f"Reserved unit length value 0x{unit_length:x}", offset)

    total_size = length_field_size + unit_length
    if offset + total_size > cursor.end_offset:
        raise CorruptSectionLengthError(f"Unit of 0x{total_size:x} bytes ends at 0x{offset + total_size:x}, "
                                        f"past the end of the section (0x{cursor.end_offset:x})", offset)
    return (offset, total_size)


class CompilationUnit:
    """
    A unit of .debug_info. The header is decoded when the unit is found in the section,
    the tree of entries is decoded the first time it is needed and kept afterward.
    """

    dwarfinfo: "DwarfInfo"
    offset: int
    unit_length: int
    offset_size: int
    version: int
    unit_type: int
    address_size: int
    abbrev_offset: int
    header_size: int
    dwo_id: Optional[int]
    type_signature: Optional[int]
    type_offset: Optional[int]
    strict: bool
    logger: logging.Logger

    _cursor: ByteCursor     # Over the whole unit, header included
    _abbrev_table: Optional[AbbreviationTable]
    _dies: Optional[List[DIE]]
    _offset_to_index: Dict[int, int]
    _line_program: Optional[LineProgram]
    _line_program_loaded: bool

    def __init__(self, dwarfinfo: "DwarfInfo", cursor: ByteCursor, strict: bool = True) -> None:
        """Decode the header of the unit that starts at the cursor position. The cursor is moved to the next unit"""
        self.dwarfinfo = dwarfinfo
        self.strict = strict
        self.logger = logging.getLogger(self.__class__.__name__)
        self._abbrev_table = None
        self._dies = None
        self._offset_to_index = {}
        self._line_program = None
        self._line_program_loaded = False
        self.dwo_id = None
        self.type_signature = None
        self.type_offset = None

        self.offset, total_size = read_unit_extent(cursor)
        length_field_size = cursor.tell() - self.offset
        self.offset_size = 4 if length_field_size == 4 else 8
        self.unit_length = total_size - length_field_size

        cursor.seek(self.offset)
        self._cursor = cursor.slice(self.total_size)
        unit = self._cursor.copy()
        unit.skip(self.length_field_size)

        self.version = unit.read_u16()
        if self.version not in SUPPORTED_VERSIONS:
            dwarfinfo.report_unsupported_version(self.version)
            raise BadUnitHeaderError(f"Unsupported DWARF version {self.version}", self.offset)

        if self.version >= 5:
            self.unit_type = unit.read_u8()
            self.address_size = unit.read_u8()
            self.abbrev_offset = unit.read_uint(self.offset_size)
            if self.unit_type in (UnitType.DW_UT_skeleton, UnitType.DW_UT_split_compile):
                self.dwo_id = unit.read_u64()
            elif self.unit_type in (UnitType.DW_UT_type, UnitType.DW_UT_split_type):
                self.type_signature = unit.read_u64()
                self.type_offset = unit.read_uint(self.offset_size)
        else:
            self.unit_type = UnitType.DW_UT_compile
            self.abbrev_offset = unit.read_uint(self.offset_size)
            self.address_size = unit.read_u8()

        if self.address_size not in SUPPORTED_ADDRESS_SIZES:
            raise BadUnitHeaderError(f"Unsupported address size {self.address_size}", self.offset)

        self.header_size = unit.tell() - self.offset

    @property
    def length_field_size(self) -> int:
        return 4 if self.offset_size == 4 else 12

    @property
    def total_size(self) -> int:
        """Size of the unit in the section, length field included"""
        return self.length_field_size + self.unit_length

    @property
    def end_offset(self) -> int:
        """Offset of the next unit"""
        return self.offset + self.total_size

    def contains_offset(self, offset: int) -> bool:
        return self.offset <= offset < self.end_offset

    def get_encoding(self) -> UnitEncoding:
        return UnitEncoding(version=self.version, address_size=self.address_size, offset_size=self.offset_size, unit_offset=self.offset)

    def get_abbrev_table(self) -> AbbreviationTable:
        if self._abbrev_table is None:
            self._abbrev_table = self.dwarfinfo.get_abbrev_table(self.abbrev_offset, self.offset)
        return self._abbrev_table

    def is_tree_built(self) -> bool:
        return self._dies is not None

    def build_tree(self) -> None:
        """Decode every entry of the unit. Does nothing if already done"""
        if self._dies is not None:
            return
        cursor = self._cursor.copy()
        cursor.seek(self.offset + self.header_size)
        builder = DieTreeBuilder(self, self.get_abbrev_table(), AttributeDecoder(self.get_encoding(), strict=self.strict))
        dies = builder.build(cursor)
        self._offset_to_index = dict((die.offset, i) for i, die in enumerate(dies))
        self._dies = dies
        self.logger.debug(f"Built unit at 0x{self.offset:x}: {len(dies)} entries")

    def _get_dies(self) -> List[DIE]:
        self.build_tree()
        assert self._dies is not None
        return self._dies

    def get_top_die(self) -> DIE:
        return self._get_dies()[0]

    def iter_dies(self) -> Iterator[DIE]:
        """Every entry in section order"""
        return iter(self._get_dies())

    def get_die_count(self) -> int:
        return len(self._get_dies())

    def get_die_at_offset(self, offset: int) -> DIE:
        """Find an entry by its section offset"""
        dies = self._get_dies()
        index = self._offset_to_index.get(offset, None)
        if index is None:
            raise DanglingReferenceError(f"No entry at offset 0x{offset:x} in unit at 0x{self.offset:x}")
        return dies[index]

    def get_die_at_relative_offset(self, relative_offset: int) -> DIE:
        return self.get_die_at_offset(self.offset + relative_offset)

    def get_name(self) -> Optional[str]:
        return self.get_top_die().get_name()

    def get_comp_dir(self) -> Optional[str]:
        return self.get_top_die().get_string(At.DW_AT_comp_dir)

    def get_producer(self) -> Optional[str]:
        return self.get_top_die().get_string(At.DW_AT_producer)

    def get_language(self) -> Optional[int]:
        return self.get_top_die().get_int(At.DW_AT_language)

    def _get_base(self, attributes: Sequence[int], default: int) -> int:
        top_die = self.get_top_die()
        for attribute in attributes:
            value = top_die.get_int(attribute)
            if value is not None:
                return value
        return default

    def get_str_offsets_base(self) -> int:
        # Default value skips the header of the only contribution of the section
        return self._get_base([At.DW_AT_str_offsets_base], 8 if self.offset_size == 4 else 16)

    def get_addr_base(self) -> int:
        return self._get_base([At.DW_AT_addr_base, At.DW_AT_GNU_addr_base], 8 if self.offset_size == 4 else 16)

    def get_rnglists_base(self) -> int:
        return self._get_base([At.DW_AT_rnglists_base], get_rnglists_header_size(self.offset_size))

    def resolve_string_value(self, attr: AttributeValue) -> str:
        """Text of an attribute that has a string form"""
        if attr.kind == ValueKind.STRING:
            assert isinstance(attr.value, bytes)
            return attr.value.decode('utf8', errors='replace')
        if attr.kind == ValueKind.STRING_REF:
            return self.dwarfinfo.resolve_string(int(attr.value))
        if attr.kind == ValueKind.LINE_STRING_REF:
            return self.dwarfinfo.resolve_line_string(int(attr.value))
        if attr.kind == ValueKind.STRING_INDEX:
            return self.resolve_string_index(int(attr.value))
        raise ValueError(f"Attribute {format_enum_value(At, attr.attribute)} is not a string ({attr.kind.name})")

    def resolve_string_index(self, index: int) -> str:
        section = self.dwarfinfo.section('.debug_str_offsets')
        if section is None:
            raise BadStringOffsetError(f"String index {index} used without a .debug_str_offsets section")
        cursor = self.dwarfinfo.make_cursor(section)
        try:
            cursor.seek(self.get_str_offsets_base() + index * self.offset_size)
            offset = cursor.read_uint(self.offset_size)
        except OutOfBoundsError as e:
            raise BadStringOffsetError(f"String index {index} is outside of .debug_str_offsets. {e}")
        return self.dwarfinfo.resolve_string(offset)

    def resolve_address_index(self, index: int) -> int:
        section = self.dwarfinfo.section('.debug_addr')
        if section is None:
            raise OutOfBoundsError(f"Address index {index} used without a .debug_addr section")
        cursor = self.dwarfinfo.make_cursor(section)
        cursor.seek(self.get_addr_base() + index * self.address_size)
        return cursor.read_uint(self.address_size)

    def resolve_address_value(self, attr: AttributeValue) -> int:
        if attr.kind == ValueKind.ADDRESS_INDEX:
            return self.resolve_address_index(int(attr.value))
        if attr.kind in (ValueKind.ADDRESS, ValueKind.UNSIGNED):
            return int(attr.value)
        raise ValueError(f"Attribute {format_enum_value(At, attr.attribute)} is not an address ({attr.kind.name})")

    def get_die_address_ranges(self, die: DIE) -> List[Tuple[int, int]]:
        """Address ranges covered by an entry, from DW_AT_ranges or DW_AT_low_pc/DW_AT_high_pc"""
        ranges_attr = die.get_attribute(At.DW_AT_ranges)
        if ranges_attr is not None:
            return self._read_ranges(ranges_attr)

        low_pc = die.get_address(At.DW_AT_low_pc)
        if low_pc is None:
            return []
        high_attr = die.get_attribute(At.DW_AT_high_pc)
        if high_attr is None:
            return [(low_pc, low_pc + 1)]
        if high_attr.kind in (ValueKind.ADDRESS, ValueKind.ADDRESS_INDEX):
            high_pc = self.resolve_address_value(high_attr)
        else:
            high_pc = low_pc + int(high_attr.value)    # DWARF 4+ may give a length
        if high_pc <= low_pc:
            return []
        return [(low_pc, high_pc)]

    def _read_ranges(self, attr: AttributeValue) -> List[Tuple[int, int]]:
        base_address = self.get_top_die().get_address(At.DW_AT_low_pc) or 0
        if self.version < 5:
            section = self.dwarfinfo.section('.debug_ranges')
            if section is None:
                raise OutOfBoundsError("DW_AT_ranges used without a .debug_ranges section")
            cursor = self.dwarfinfo.make_cursor(section)
            cursor.seek(int(attr.value))
            return read_debug_ranges(cursor, self.address_size, base_address)

        section = self.dwarfinfo.section('.debug_rnglists')
        if section is None:
            raise OutOfBoundsError("DW_AT_ranges used without a .debug_rnglists section")
        cursor = self.dwarfinfo.make_cursor(section)
        if attr.form == Form.DW_FORM_rnglistx:
            base = self.get_rnglists_base()
            cursor.seek(base + int(attr.value) * self.offset_size)
            cursor.seek(base + cursor.read_uint(self.offset_size))
        else:
            cursor.seek(int(attr.value))
        return read_rnglist(cursor, self.address_size, base_address, self.resolve_address_index)

    def get_static_address(self, die: DIE) -> Optional[int]:
        """Address of a variable whose location is a constant address. None otherwise"""
        location = die.get_attribute(At.DW_AT_location)
        if location is None or location.kind not in (ValueKind.EXPRLOC, ValueKind.BLOCK):
            return None
        assert isinstance(location.value, bytes)
        return get_static_address(location.value, self.address_size,
                                  little_endian=self.dwarfinfo.is_little_endian(),
                                  resolve_address_index=self.resolve_address_index)

    def get_line_program(self) -> Optional[LineProgram]:
        """The line number program referred by DW_AT_stmt_list. None if the unit has none"""
        if not self._line_program_loaded:
            self._line_program = self.dwarfinfo.get_line_program(self)
            self._line_program_loaded = True
        return self._line_program

    def get_line_table(self) -> Optional[LineTable]:
        program = self.get_line_program()
        if program is None:
            return None
        return program.get_line_table()

    def __repr__(self) -> str:
        return f'<CompilationUnit at 0x{self.offset:x}: DWARF{self.version}, {self.total_size} bytes>'
