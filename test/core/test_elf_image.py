#    test_elf_image.py
#        Test the ELF adapter that serves the debug sections of an image
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

import os
import tempfile

from dwarfscope.core.bintools.elf_image import ElfImage
from dwarfscope.dwarf.dwarf_info import DwarfInfo
from dwarfscope.dwarf.constants import Tag, At, Form
from dwarfscope.exceptions import ElfImageError
from test.dwarf_writer import (AbbrevTableBuilder, UnitBuilder, StringTable, ElfSection, build_elf64, make_compression_header,
                               SHT_NOBITS, SHF_COMPRESSED)
from test import DwarfScopeUnitTest


def build_debug_sections():
    strings = StringTable()
    name_offset = strings.add('firmware.c')
    abbrev = AbbrevTableBuilder().add(1, Tag.DW_TAG_compile_unit, False, [(At.DW_AT_name, Form.DW_FORM_strp)]).build()
    unit = UnitBuilder(version=4)
    unit.die(1, unit.offset(name_offset))
    return [
        ElfSection('.text', b'\x90' * 16),
        ElfSection('.debug_info', unit.build()),
        ElfSection('.debug_abbrev', abbrev),
        ElfSection('.debug_str', strings.build()),
    ]


class TestElfImage(DwarfScopeUnitTest):

    def test_sections(self):
        sections = build_debug_sections()
        image = ElfImage(build_elf64(sections))
        self.assertTrue(image.is_little_endian())
        self.assertEqual(image.get_elf_class(), 64)
        self.assertEqual(image.get_machine_arch(), 'x64')
        self.assertTrue(image.has_dwarf_info())

        for section in sections:
            section_range = image.section_bytes(section.name)
            self.assertIsNotNone(section_range)
            self.assertEqual(section_range.tobytes(), section.data)
        self.assertIsNone(image.section_bytes('.debug_line'))
        self.assertIs(image.section_bytes('.debug_info'), image.section_bytes('.debug_info'))

    def test_no_debug_info(self):
        image = ElfImage(build_elf64([ElfSection('.text', b'\x00' * 4)]))
        self.assertFalse(image.has_dwarf_info())
        self.assertFalse(DwarfInfo(image).has_debug_info())

    def test_nobits_section(self):
        image = ElfImage(build_elf64([ElfSection('.debug_info', sh_type=SHT_NOBITS, size=0x100)]))
        self.assertIsNone(image.section_bytes('.debug_info'))

    def test_compressed_section(self):
        data = make_compression_header(0x40) + b'\x78\x9c\x00'
        image = ElfImage(build_elf64([ElfSection('.debug_info', data, sh_flags=SHF_COMPRESSED)]))
        with self.assertRaises(ElfImageError):
            image.section_bytes('.debug_info')

    def test_section_outside_of_file(self):
        image = ElfImage(build_elf64([ElfSection('.debug_str', b'abc\x00', size=0x10000)]))
        with self.assertRaises(ElfImageError):
            image.section_bytes('.debug_str')

    def test_not_an_elf(self):
        with self.assertRaises(ElfImageError):
            ElfImage(b'MZ' + bytes(100))
        with self.assertRaises(ElfImageError):
            ElfImage(b'')

    def test_read_dwarf_through_image(self):
        image = ElfImage(build_elf64(build_debug_sections()))
        dwarfinfo = DwarfInfo(image)
        units = dwarfinfo.get_compilation_units()
        self.assertEqual(len(units), 1)
        self.assertEqual(units[0].get_name(), 'firmware.c')

    def test_from_file(self):
        with tempfile.TemporaryDirectory() as tempdir:
            filename = os.path.join(tempdir, 'firmware.elf')
            with open(filename, 'wb') as f:
                f.write(build_elf64(build_debug_sections()))

            with ElfImage.from_file(filename) as image:
                dwarfinfo = DwarfInfo(image)
                self.assertEqual(dwarfinfo.get_compilation_units()[0].get_name(), 'firmware.c')
            image.close()   # Closing twice is harmless

            empty_file = os.path.join(tempdir, 'empty.elf')
            with open(empty_file, 'wb'):
                pass
            with self.assertRaises(ElfImageError):
                ElfImage.from_file(empty_file)

            not_elf = os.path.join(tempdir, 'not_elf.bin')
            with open(not_elf, 'wb') as f:
                f.write(b'\x00' * 64)
            with self.assertRaises(ElfImageError):
                ElfImage.from_file(not_elf)

            with self.assertRaises(FileNotFoundError):
                ElfImage.from_file(os.path.join(tempdir, 'missing.elf'))


if __name__ == '__main__':
    import unittest
    unittest.main()
