#    test_abbreviation.py
#        Test the decoding of the abbreviation tables of .debug_abbrev
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

from dwarfscope.dwarf.abbreviation import AbbreviationTable, AttributeSpec
from dwarfscope.dwarf.byte_cursor import ByteCursor
from dwarfscope.dwarf.constants import Tag, At, Form
from dwarfscope.exceptions import MalformedAbbrevError, UnknownAbbreviationCodeError, OutOfBoundsError, UnitError
from test.dwarf_writer import AbbrevTableBuilder, uleb128
from test import DwarfScopeUnitTest


class TestAbbreviationTable(DwarfScopeUnitTest):

    def test_parse_table(self):
        data = AbbrevTableBuilder() \
            .add(1, Tag.DW_TAG_compile_unit, True, [(At.DW_AT_name, Form.DW_FORM_strp), (At.DW_AT_language, Form.DW_FORM_data2)]) \
            .add(2, Tag.DW_TAG_variable, False, [(At.DW_AT_name, Form.DW_FORM_string), (At.DW_AT_external, Form.DW_FORM_flag_present)]) \
            .build()

        table = AbbreviationTable.parse(ByteCursor(data))
        self.assertEqual(len(table), 2)
        self.assertIn(1, table)
        self.assertIn(2, table)
        self.assertNotIn(3, table)

        decl = table.get(1)
        self.assertEqual(decl.code, 1)
        self.assertEqual(decl.tag, Tag.DW_TAG_compile_unit)
        self.assertTrue(decl.has_children)
        self.assertEqual(decl.specs, (
            AttributeSpec(At.DW_AT_name, Form.DW_FORM_strp),
            AttributeSpec(At.DW_AT_language, Form.DW_FORM_data2)
        ))

        decl = table.get(2)
        self.assertEqual(decl.tag, Tag.DW_TAG_variable)
        self.assertFalse(decl.has_children)
        self.assertEqual(len(decl.specs), 2)
        self.assertEqual([d.code for d in table], [1, 2])

    def test_declaration_without_attribute(self):
        data = AbbrevTableBuilder().add(5, Tag.DW_TAG_lexical_block, True, []).build()
        table = AbbreviationTable.parse(ByteCursor(data))
        self.assertEqual(table.get(5).specs, ())

    def test_table_offset(self):
        first = AbbrevTableBuilder().add(1, Tag.DW_TAG_compile_unit, False, []).build()
        second = AbbrevTableBuilder().add(1, Tag.DW_TAG_subprogram, False, []).build()
        cursor = ByteCursor(first + second)
        cursor.seek(len(first))
        table = AbbreviationTable.parse(cursor)
        self.assertEqual(table.offset, len(first))
        self.assertEqual(table.get(1).tag, Tag.DW_TAG_subprogram)

    def test_implicit_const(self):
        data = AbbrevTableBuilder() \
            .add(1, Tag.DW_TAG_member, False, [(At.DW_AT_byte_size, Form.DW_FORM_implicit_const, -3), (At.DW_AT_name, Form.DW_FORM_string)]) \
            .build()
        table = AbbreviationTable.parse(ByteCursor(data))
        spec = table.get(1).specs[0]
        self.assertEqual(spec.form, Form.DW_FORM_implicit_const)
        self.assertEqual(spec.implicit_const, -3)
        self.assertIsNone(table.get(1).specs[1].implicit_const)

    def test_unknown_code(self):
        data = AbbrevTableBuilder().add(1, Tag.DW_TAG_compile_unit, False, []).build()
        table = AbbreviationTable.parse(ByteCursor(data))
        with self.assertRaises(UnknownAbbreviationCodeError) as ctx:
            table.get(2, unit_offset=0x40)
        self.assertEqual(ctx.exception.unit_offset, 0x40)
        self.assertIsInstance(ctx.exception, UnitError)

    def test_duplicate_code(self):
        data = AbbrevTableBuilder() \
            .add(1, Tag.DW_TAG_compile_unit, True, []) \
            .add(1, Tag.DW_TAG_variable, False, []) \
            .build()
        with self.assertRaises(MalformedAbbrevError):
            AbbreviationTable.parse(ByteCursor(data))

    def test_bad_children_flag(self):
        data = uleb128(1) + uleb128(Tag.DW_TAG_compile_unit) + b'\x02' + b'\x00\x00' + b'\x00'
        with self.assertRaises(MalformedAbbrevError):
            AbbreviationTable.parse(ByteCursor(data), unit_offset=0)

    def test_unknown_form(self):
        data = uleb128(1) + uleb128(Tag.DW_TAG_compile_unit) + b'\x00' + uleb128(At.DW_AT_name) + uleb128(0x7f) + b'\x00\x00' + b'\x00'
        with self.assertRaises(MalformedAbbrevError):
            AbbreviationTable.parse(ByteCursor(data))

    def test_missing_terminator(self):
        data = AbbrevTableBuilder().add(1, Tag.DW_TAG_compile_unit, False, [(At.DW_AT_name, Form.DW_FORM_string)]).build(terminate=False)
        with self.assertRaises(OutOfBoundsError):
            AbbreviationTable.parse(ByteCursor(data))

        # Cut in the middle of the attribute list
        with self.assertRaises(OutOfBoundsError):
            AbbreviationTable.parse(ByteCursor(data[:4]))


if __name__ == '__main__':
    import unittest
    unittest.main()
