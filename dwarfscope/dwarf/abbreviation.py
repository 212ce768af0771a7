#    abbreviation.py
#        Decodes the abbreviation tables of .debug_abbrev. An abbreviation tells the
#        tag and the attribute layout of every entry that refers to it
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

__all__ = ['AttributeSpec', 'AbbreviationDeclaration', 'AbbreviationTable']

import logging
from dataclasses import dataclass

from dwarfscope.dwarf.byte_cursor import ByteCursor
from dwarfscope.dwarf.constants import Form, At, Children, format_enum_value
from dwarfscope.exceptions import MalformedAbbrevError, UnknownAbbreviationCodeError
from dwarfscope.tools.typing import *

KNOWN_FORMS = frozenset(int(form) for form in Form)


@dataclass(frozen=True)
class AttributeSpec:
    attribute: int
    form: int
    implicit_const: Optional[int] = None   # Only with DW_FORM_implicit_const

    def __repr__(self) -> str:
        return f'<AttributeSpec {format_enum_value(At, self.attribute)}: {format_enum_value(Form, self.form)}>'


@dataclass(frozen=True)
class AbbreviationDeclaration:
    code: int
    tag: int
    has_children: bool
    specs: Tuple[AttributeSpec, ...]


class AbbreviationTable:
    """The abbreviation declarations of one unit, indexed by their code"""

    offset: int
    declarations: Dict[int, AbbreviationDeclaration]

    def __init__(self, offset: int, declarations: Dict[int, AbbreviationDeclaration]) -> None:
        self.offset = offset
        self.declarations = declarations

    @classmethod
    def parse(cls, cursor: ByteCursor, unit_offset: Optional[int] = None) -> "AbbreviationTable":
        """
        Decode the table starting at the cursor position. Reads until the null code that ends the table.
        A duplicate code is rejected rather than shadowed.
        """
        logger = logging.getLogger(cls.__name__)
        offset = cursor.tell()
        declarations: Dict[int, AbbreviationDeclaration] = {}
        while True:
            code = cursor.read_uleb128()
            if code == 0:
                break

            decl_offset = cursor.tell()
            tag = cursor.read_uleb128()
            children_flag = cursor.read_u8()
            if children_flag not in (Children.DW_CHILDREN_no, Children.DW_CHILDREN_yes):
                raise MalformedAbbrevError(f"Abbreviation {code} at 0x{decl_offset:x} has an invalid children flag 0x{children_flag:x}",
                                           unit_offset)

            specs: List[AttributeSpec] = []
            while True:
                attribute = cursor.read_uleb128()
                form = cursor.read_uleb128()
                if attribute == 0 and form == 0:
                    break
                if form not in KNOWN_FORMS:
                    raise MalformedAbbrevError(f"Abbreviation {code} at 0x{decl_offset:x} uses unknown form 0x{form:x} "
                                               f"for attribute {format_enum_value(At, attribute)}", unit_offset)
                implicit_const: Optional[int] = None
                if form == Form.DW_FORM_implicit_const:
                    implicit_const = cursor.read_sleb128()
                specs.append(AttributeSpec(attribute=attribute, form=form, implicit_const=implicit_const))

            if code in declarations:
                raise MalformedAbbrevError(f"Abbreviation code {code} is declared twice in the table at 0x{offset:x}", unit_offset)

            declarations[code] = AbbreviationDeclaration(
                code=code,
                tag=tag,
                has_children=children_flag == Children.DW_CHILDREN_yes,
                specs=tuple(specs)
            )

        logger.debug(f"Decoded {len(declarations)} abbreviations at 0x{offset:x}")
        return cls(offset, declarations)

    def get(self, code: int, unit_offset: Optional[int] = None) -> AbbreviationDeclaration:
        try:
            return self.declarations[code]
        except KeyError:
            raise UnknownAbbreviationCodeError(f"Abbreviation code {code} is not in the table at 0x{self.offset:x}", unit_offset)

    def __contains__(self, code: int) -> bool:
        return code in self.declarations

    def __len__(self) -> int:
        return len(self.declarations)

    def __iter__(self) -> Iterator[AbbreviationDeclaration]:
        return iter(self.declarations.values())

    def __repr__(self) -> str:
        return f'<AbbreviationTable at 0x{self.offset:x}: {len(self.declarations)} declarations>'
