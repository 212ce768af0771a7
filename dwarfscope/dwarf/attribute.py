#    attribute.py
#        Decodes the value of an attribute according to its form.
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

__all__ = ['ValueKind', 'AttributeValue', 'UnitEncoding', 'AttributeDecoder']

import logging
from enum import Enum, auto
from dataclasses import dataclass

from dwarfscope.dwarf.byte_cursor import ByteCursor
from dwarfscope.dwarf.abbreviation import AttributeSpec
from dwarfscope.dwarf.constants import Form, At, format_enum_value
from dwarfscope.exceptions import UnsupportedFormError
from dwarfscope.tools.typing import *


class ValueKind(Enum):
    UNSIGNED = auto()
    SIGNED = auto()
    ADDRESS = auto()
    ADDRESS_INDEX = auto()      # Index in .debug_addr
    FLAG = auto()
    BLOCK = auto()
    EXPRLOC = auto()
    STRING = auto()             # Inline string
    STRING_REF = auto()         # Offset in .debug_str
    LINE_STRING_REF = auto()    # Offset in .debug_line_str
    STRING_INDEX = auto()       # Index in .debug_str_offsets
    REFERENCE = auto()          # Offset of an entry in .debug_info. Always section-absolute
    SECTION_OFFSET = auto()     # Offset in another debug section (line, ranges, loclists, etc)


ValueType = Union[int, bool, bytes]


@dataclass(frozen=True)
class AttributeValue:
    attribute: int
    form: int
    kind: ValueKind
    value: ValueType
    offset: int     # Location of the encoded value in .debug_info

    def is_reference(self) -> bool:
        return self.kind == ValueKind.REFERENCE

    def is_string(self) -> bool:
        return self.kind in (ValueKind.STRING, ValueKind.STRING_REF, ValueKind.LINE_STRING_REF, ValueKind.STRING_INDEX)

    def is_constant(self) -> bool:
        return self.kind in (ValueKind.UNSIGNED, ValueKind.SIGNED)

    def __repr__(self) -> str:
        if isinstance(self.value, bytes):
            valstr = self.value.hex()
        elif isinstance(self.value, bool):
            valstr = str(self.value)
        else:
            valstr = f'0x{self.value:x}' if self.kind in (ValueKind.ADDRESS, ValueKind.REFERENCE) else str(self.value)
        return f'<AttributeValue {format_enum_value(At, self.attribute)}={valstr} ({format_enum_value(Form, self.form)})>'


@dataclass(frozen=True)
class UnitEncoding:
    """What the decoder needs to know about the unit that contains the values"""
    version: int
    address_size: int
    offset_size: int
    unit_offset: int    # Section offset of the unit, base of the unit-relative references


class AttributeDecoder:
    """
    Turns the bytes of an attribute into an AttributeValue.
    In strict mode, a form that is known but not interpreted raises UnsupportedFormError.
    Otherwise, its bytes are skipped and the attribute is dropped.
    """

    # Forms we know the size of but do not interpret. None means "size of a section offset"
    UNINTERPRETED_FORMS: Dict[int, Optional[int]] = {
        Form.DW_FORM_ref_sig8: 8,
        Form.DW_FORM_ref_sup4: 4,
        Form.DW_FORM_ref_sup8: 8,
        Form.DW_FORM_strp_sup: None,
        Form.DW_FORM_GNU_ref_alt: None,
        Form.DW_FORM_GNU_strp_alt: None,
    }

    encoding: UnitEncoding
    strict: bool
    logger: logging.Logger
    skipped_count: int

    def __init__(self, encoding: UnitEncoding, strict: bool = True) -> None:
        self.encoding = encoding
        self.strict = strict
        self.logger = logging.getLogger(self.__class__.__name__)
        self.skipped_count = 0

    def decode(self, spec: AttributeSpec, cursor: ByteCursor) -> Optional[AttributeValue]:
        """Decode one attribute. Returns None if the attribute was skipped in best-effort mode"""
        offset = cursor.tell()
        form = spec.form
        while form == Form.DW_FORM_indirect:
            form = cursor.read_uleb128()
            if form == Form.DW_FORM_implicit_const:
                # The constant lives in the abbreviation, it cannot be selected indirectly
                raise UnsupportedFormError(f"DW_FORM_implicit_const cannot be used through DW_FORM_indirect (at 0x{offset:x})",
                                           self.encoding.unit_offset)

        if form in self.UNINTERPRETED_FORMS:
            size = self.UNINTERPRETED_FORMS[form]
            if size is None:
                size = self.encoding.offset_size
            if self.strict:
                raise UnsupportedFormError(f"Form {format_enum_value(Form, form)} of attribute {format_enum_value(At, spec.attribute)} "
                                           f"at 0x{offset:x} is not supported", self.encoding.unit_offset)
            cursor.skip(size)
            self.skipped_count += 1
            self.logger.debug(f"Skipped attribute {format_enum_value(At, spec.attribute)} with unsupported form "
                              f"{format_enum_value(Form, form)} at 0x{offset:x}")
            return None

        kind, value = self.read_form(form, cursor, spec.implicit_const)
        return AttributeValue(attribute=spec.attribute, form=form, kind=kind, value=value, offset=offset)

    def read_form(self, form: int, cursor: ByteCursor, implicit_const: Optional[int] = None) -> Tuple[ValueKind, ValueType]:
        enc = self.encoding
        if form == Form.DW_FORM_addr:
            return ValueKind.ADDRESS, cursor.read_uint(enc.address_size)

        elif form in (Form.DW_FORM_data1, Form.DW_FORM_data2, Form.DW_FORM_data4, Form.DW_FORM_data8):
            size = {Form.DW_FORM_data1: 1, Form.DW_FORM_data2: 2, Form.DW_FORM_data4: 4, Form.DW_FORM_data8: 8}[form]
            return ValueKind.UNSIGNED, cursor.read_uint(size)

        elif form == Form.DW_FORM_data16:
            return ValueKind.BLOCK, cursor.read_bytes(16)

        elif form == Form.DW_FORM_udata:
            return ValueKind.UNSIGNED, cursor.read_uleb128()

        elif form == Form.DW_FORM_sdata:
            return ValueKind.SIGNED, cursor.read_sleb128()

        elif form == Form.DW_FORM_implicit_const:
            if implicit_const is None:
                raise UnsupportedFormError("DW_FORM_implicit_const without a constant", enc.unit_offset)
            return ValueKind.SIGNED, implicit_const

        elif form == Form.DW_FORM_block1:
            return ValueKind.BLOCK, cursor.read_bytes(cursor.read_u8())

        elif form == Form.DW_FORM_block2:
            return ValueKind.BLOCK, cursor.read_bytes(cursor.read_u16())

        elif form == Form.DW_FORM_block4:
            return ValueKind.BLOCK, cursor.read_bytes(cursor.read_u32())

        elif form == Form.DW_FORM_block:
            return ValueKind.BLOCK, cursor.read_bytes(cursor.read_uleb128())

        elif form == Form.DW_FORM_exprloc:
            return ValueKind.EXPRLOC, cursor.read_bytes(cursor.read_uleb128())

        elif form == Form.DW_FORM_string:
            return ValueKind.STRING, cursor.read_cstring()

        elif form == Form.DW_FORM_strp:
            return ValueKind.STRING_REF, cursor.read_uint(enc.offset_size)

        elif form == Form.DW_FORM_line_strp:
            return ValueKind.LINE_STRING_REF, cursor.read_uint(enc.offset_size)

        elif form in (Form.DW_FORM_strx, Form.DW_FORM_GNU_str_index):
            return ValueKind.STRING_INDEX, cursor.read_uleb128()

        elif form in (Form.DW_FORM_strx1, Form.DW_FORM_strx2, Form.DW_FORM_strx3, Form.DW_FORM_strx4):
            size = {Form.DW_FORM_strx1: 1, Form.DW_FORM_strx2: 2, Form.DW_FORM_strx3: 3, Form.DW_FORM_strx4: 4}[form]
            return ValueKind.STRING_INDEX, cursor.read_uint(size)

        elif form in (Form.DW_FORM_addrx, Form.DW_FORM_GNU_addr_index):
            return ValueKind.ADDRESS_INDEX, cursor.read_uleb128()

        elif form in (Form.DW_FORM_addrx1, Form.DW_FORM_addrx2, Form.DW_FORM_addrx3, Form.DW_FORM_addrx4):
            size = {Form.DW_FORM_addrx1: 1, Form.DW_FORM_addrx2: 2, Form.DW_FORM_addrx3: 3, Form.DW_FORM_addrx4: 4}[form]
            return ValueKind.ADDRESS_INDEX, cursor.read_uint(size)

        elif form in (Form.DW_FORM_ref1, Form.DW_FORM_ref2, Form.DW_FORM_ref4, Form.DW_FORM_ref8):
            size = {Form.DW_FORM_ref1: 1, Form.DW_FORM_ref2: 2, Form.DW_FORM_ref4: 4, Form.DW_FORM_ref8: 8}[form]
            return ValueKind.REFERENCE, enc.unit_offset + cursor.read_uint(size)

        elif form == Form.DW_FORM_ref_udata:
            return ValueKind.REFERENCE, enc.unit_offset + cursor.read_uleb128()

        elif form == Form.DW_FORM_ref_addr:
            # DWARF 2 encodes it with the size of an address, later versions with the size of an offset.
            size = enc.address_size if enc.version <= 2 else enc.offset_size
            return ValueKind.REFERENCE, cursor.read_uint(size)

        elif form == Form.DW_FORM_sec_offset:
            return ValueKind.SECTION_OFFSET, cursor.read_uint(enc.offset_size)

        elif form in (Form.DW_FORM_loclistx, Form.DW_FORM_rnglistx):
            return ValueKind.UNSIGNED, cursor.read_uleb128()

        elif form == Form.DW_FORM_flag:
            return ValueKind.FLAG, cursor.read_u8() != 0

        elif form == Form.DW_FORM_flag_present:
            return ValueKind.FLAG, True

        raise UnsupportedFormError(f"Cannot decode form {format_enum_value(Form, form)} at 0x{cursor.tell():x}", enc.unit_offset)
