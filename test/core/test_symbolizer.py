#    test_symbolizer.py
#        Test the address and name lookups made over all the compilation units
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

from dwarfscope.core.sections import InMemorySectionProvider
from dwarfscope.core.symbolizer import Symbolizer, SourceLocation
from dwarfscope.dwarf.dwarf_info import DwarfInfo, UnitErrorPolicy
from dwarfscope.dwarf.constants import Tag, At, Form, Op
from dwarfscope.exceptions import UnknownAbbreviationCodeError
from test.dwarf_writer import AbbrevTableBuilder, UnitBuilder, LineProgramBuilder, cstr, uleb128, u8, u32, u64
from test import DwarfScopeUnitTest

ABBREV = AbbrevTableBuilder() \
    .add(1, Tag.DW_TAG_compile_unit, True, [
        (At.DW_AT_name, Form.DW_FORM_string),
        (At.DW_AT_comp_dir, Form.DW_FORM_string),
        (At.DW_AT_low_pc, Form.DW_FORM_addr),
        (At.DW_AT_high_pc, Form.DW_FORM_data8),
        (At.DW_AT_stmt_list, Form.DW_FORM_sec_offset)]) \
    .add(2, Tag.DW_TAG_subprogram, True, [
        (At.DW_AT_name, Form.DW_FORM_string),
        (At.DW_AT_low_pc, Form.DW_FORM_addr),
        (At.DW_AT_high_pc, Form.DW_FORM_data4),
        (At.DW_AT_external, Form.DW_FORM_flag_present)]) \
    .add(3, Tag.DW_TAG_variable, False, [
        (At.DW_AT_name, Form.DW_FORM_string),
        (At.DW_AT_location, Form.DW_FORM_exprloc)]) \
    .add(4, Tag.DW_TAG_subprogram, False, [
        (At.DW_AT_name, Form.DW_FORM_string),
        (At.DW_AT_linkage_name, Form.DW_FORM_string),
        (At.DW_AT_declaration, Form.DW_FORM_flag_present)]) \
    .add(5, Tag.DW_TAG_subprogram, False, [
        (At.DW_AT_specification, Form.DW_FORM_ref4),
        (At.DW_AT_low_pc, Form.DW_FORM_addr),
        (At.DW_AT_high_pc, Form.DW_FORM_data4)]) \
    .build()


def exprloc(data):
    return uleb128(len(data)) + data


def build_unit():
    unit = UnitBuilder(version=4)
    unit.die(1, cstr('main.c'), cstr('/work'), u64(0x1000), u64(0x100), u32(0))
    unit.die(3, cstr('counter'), exprloc(u8(Op.DW_OP_addr) + u64(0x601000)))
    unit.die(2, cstr('main'), u64(0x1000), u32(0x40))
    unit.die(3, cstr('local'), exprloc(bytes([0x91, 0x7c])))   # DW_OP_fbreg -4
    unit.end_children()
    decl_offset = unit.die(4, cstr('method'), cstr('_ZN3Foo6methodEv'))
    unit.die(5, u32(decl_offset), u64(0x1040), u32(0x20))
    unit.die(2, cstr('outer'), u64(0x1080), u32(0x40))
    unit.die(2, cstr('inner'), u64(0x1090), u32(0x10))
    unit.end_children()     # inner
    unit.end_children()     # outer
    unit.end_children()     # root
    return unit.build()


def build_line_program():
    builder = LineProgramBuilder(version=4, file_names=[('main.c', 0)])
    builder.set_address(0x1000) \
        .advance_line(2) \
        .copy() \
        .advance_pc(0x10) \
        .special(0, 1) \
        .advance_pc(0x30) \
        .special(0, 6) \
        .advance_pc(0x20) \
        .end_sequence()
    return builder.build()


def make_dwarfinfo(extra_units=b''):
    provider = InMemorySectionProvider({
        '.debug_info': build_unit() + extra_units,
        '.debug_abbrev': ABBREV,
        '.debug_line': build_line_program()
    })
    return DwarfInfo(provider)


class TestSymbolizer(DwarfScopeUnitTest):

    def setUp(self):
        self.symbolizer = Symbolizer(make_dwarfinfo())

    def test_find_function(self):
        self.assertEqual(self.symbolizer.find_function(0x1000).get_name(), 'main')
        self.assertEqual(self.symbolizer.find_function(0x103f).get_name(), 'main')
        self.assertEqual(self.symbolizer.find_function(0x1040).tag, Tag.DW_TAG_subprogram)
        self.assertIsNone(self.symbolizer.find_function(0xfff))
        self.assertIsNone(self.symbolizer.find_function(0x1060))    # Gap between functions
        self.assertIsNone(self.symbolizer.find_function(0x2000))

    def test_nested_functions(self):
        self.assertEqual(self.symbolizer.find_function_name(0x1080), 'outer')
        self.assertEqual(self.symbolizer.find_function_name(0x1095), 'inner')
        self.assertEqual(self.symbolizer.find_function_name(0x10a0), 'outer')
        self.assertEqual(self.symbolizer.find_function_name(0x10bf), 'outer')
        self.assertIsNone(self.symbolizer.find_function_name(0x10c0))

    def test_names_through_specification(self):
        definition = self.symbolizer.find_function(0x1050)
        self.assertIsNone(definition.get_name())
        self.assertEqual(self.symbolizer.get_die_name(definition), 'method')
        self.assertEqual(self.symbolizer.get_die_linkage_name(definition), '_ZN3Foo6methodEv')
        self.assertEqual(self.symbolizer.find_function_name(0x1050), 'method')

    def test_find_line(self):
        location = self.symbolizer.find_line(0x1005)
        self.assertEqual(location, SourceLocation(address=0x1005, row_address=0x1000, path='/work/main.c',
                                                  line=3, column=0, function='main'))

        location = self.symbolizer.find_line(0x1010)
        self.assertEqual(location.line, 4)
        self.assertEqual(location.row_address, 0x1010)

        location = self.symbolizer.find_line(0x1045)
        self.assertEqual(location.line, 10)
        self.assertEqual(location.function, 'method')

        self.assertIsNone(self.symbolizer.find_line(0x1060))
        self.assertIsNone(self.symbolizer.find_line(0x500))

    def test_find_symbol(self):
        method = self.symbolizer.find_symbol('method')
        self.assertEqual(len(method), 2)
        self.assertEqual(method[0].tag, Tag.DW_TAG_subprogram)
        self.assertTrue(method[0].get_flag(At.DW_AT_declaration))
        self.assertLess(method[0].offset, method[1].offset)
        self.assertEqual(self.symbolizer.find_symbol('_ZN3Foo6methodEv'), method)

        self.assertEqual(len(self.symbolizer.find_symbol('counter')), 1)
        self.assertEqual(self.symbolizer.find_symbol('main.c'), [])    # Units are not symbols
        self.assertEqual(self.symbolizer.find_symbol('does_not_exist'), [])

        # The index is not exposed to modifications
        self.symbolizer.find_symbol('counter').clear()
        self.assertEqual(len(self.symbolizer.find_symbol('counter')), 1)

    def test_variable_address(self):
        self.assertEqual(self.symbolizer.find_variable_address('counter'), 0x601000)
        self.assertIsNone(self.symbolizer.find_variable_address('local'))
        self.assertIsNone(self.symbolizer.find_variable_address('main'))
        self.assertIsNone(self.symbolizer.find_variable_address('does_not_exist'))

        counter = self.symbolizer.find_symbol('counter')[0]
        self.assertEqual(self.symbolizer.get_variable_address(counter), 0x601000)

    def test_error_policy(self):
        bad_unit = UnitBuilder(version=4)
        bad_unit.raw(bytes([1]) + cstr('bad.c') + cstr('/work') + u64(0) + u64(0) + u32(0) + bytes([9, 0, 0]))
        dwarfinfo = make_dwarfinfo(bad_unit.build())

        with self.assertRaises(UnknownAbbreviationCodeError):
            Symbolizer(dwarfinfo).find_function(0x1000)

        symbolizer = Symbolizer(dwarfinfo, on_error=UnitErrorPolicy.SKIP)
        with self.assertLogs('DwarfInfo', level='WARNING'):
            self.assertEqual(symbolizer.find_function_name(0x1000), 'main')


if __name__ == '__main__':
    import unittest
    unittest.main()
