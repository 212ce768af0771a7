#    test_byte_cursor.py
#        Test the bounds-checked reader used to decode every section
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

from dwarfscope.dwarf.byte_cursor import ByteCursor
from dwarfscope.core.sections import SectionRange
from dwarfscope.exceptions import OutOfBoundsError, Leb128OverflowError
from test.dwarf_writer import uleb128, sleb128
from test import DwarfScopeUnitTest


class TestByteCursor(DwarfScopeUnitTest):

    def test_read_fixed_size(self):
        cursor = ByteCursor(bytes([0x01, 0x34, 0x12, 0x78, 0x56, 0x34, 0x12, 0xff]))
        self.assertEqual(cursor.read_u8(), 0x01)
        self.assertEqual(cursor.read_u16(), 0x1234)
        self.assertEqual(cursor.read_u32(), 0x12345678)
        self.assertEqual(cursor.read_s8(), -1)
        self.assertTrue(cursor.at_end())
        self.assertEqual(cursor.remaining(), 0)

    def test_read_big_endian(self):
        cursor = ByteCursor(bytes([0x12, 0x34, 0x00, 0x00, 0x00, 0x01]), little_endian=False)
        self.assertEqual(cursor.read_u16(), 0x1234)
        self.assertEqual(cursor.read_u32(), 1)

    def test_read_odd_sizes(self):
        cursor = ByteCursor(bytes([0x01, 0x02, 0x03, 0xff, 0xff, 0xff]))
        self.assertEqual(cursor.read_uint(3), 0x030201)
        self.assertEqual(cursor.read_sint(3), -1)
        with self.assertRaises(ValueError):
            cursor.read_uint(9)

    def test_read_past_end(self):
        cursor = ByteCursor(b'\x01\x02\x03')
        cursor.read_u8()
        with self.assertRaises(OutOfBoundsError):
            cursor.read_u32()
        self.assertEqual(cursor.tell(), 1)  # Failed read does not move
        self.assertEqual(cursor.read_u16(), 0x0302)
        with self.assertRaises(OutOfBoundsError):
            cursor.read_u8()
        with self.assertRaises(OutOfBoundsError):
            cursor.skip(1)
        with self.assertRaises(OutOfBoundsError):
            cursor.read_bytes(1)

    def test_window_and_origin(self):
        data = b'xxabcdefyy'
        cursor = ByteCursor(data, start=2, end=8)
        self.assertEqual(cursor.tell(), 0)
        self.assertEqual(cursor.read_bytes(2), b'ab')
        self.assertEqual(cursor.tell(), 2)

        cursor.seek(5)
        self.assertEqual(cursor.read_bytes(1), b'f')
        self.assertTrue(cursor.at_end())
        with self.assertRaises(OutOfBoundsError):
            cursor.read_u8()    # 'y' is outside of the window

        with self.assertRaises(OutOfBoundsError):
            cursor.seek(7)
        with self.assertRaises(OutOfBoundsError):
            ByteCursor(data, start=4, end=20)

    def test_from_section(self):
        storage = b'\x00\x00\x00\x00ABCD\x00\x00'
        section = SectionRange(name='.debug_str', storage=storage, base_offset=4, length=4)
        cursor = ByteCursor.from_section(section)
        self.assertEqual(cursor.start_offset, 0)
        self.assertEqual(cursor.end_offset, 4)
        self.assertEqual(cursor.read_bytes(4), b'ABCD')
        with self.assertRaises(OutOfBoundsError):
            cursor.read_u8()

    def test_slice_keeps_offsets(self):
        cursor = ByteCursor(b'0123456789')
        cursor.skip(2)
        sub = cursor.slice(4)
        self.assertEqual(cursor.tell(), 6)
        self.assertEqual(sub.tell(), 2)
        self.assertEqual(sub.start_offset, 2)
        self.assertEqual(sub.end_offset, 6)
        self.assertEqual(sub.read_bytes(4), b'2345')
        with self.assertRaises(OutOfBoundsError):
            sub.read_u8()
        with self.assertRaises(OutOfBoundsError):
            cursor.slice(5)

    def test_copy_is_independent(self):
        cursor = ByteCursor(b'\x01\x02\x03')
        cursor.read_u8()
        other = cursor.copy()
        self.assertEqual(other.read_u8(), 2)
        self.assertEqual(cursor.tell(), 1)

    def test_cstring(self):
        cursor = ByteCursor(b'main.c\x00\x00abc')
        self.assertEqual(cursor.read_cstring(), b'main.c')
        self.assertEqual(cursor.read_cstring(), b'')
        with self.assertRaises(OutOfBoundsError):
            cursor.read_cstring()
        self.assertEqual(cursor.tell(), 8)

    def test_uleb128_known_values(self):
        self.assertEqual(ByteCursor(bytes([0x02])).read_uleb128(), 2)
        self.assertEqual(ByteCursor(bytes([0x7f])).read_uleb128(), 127)
        self.assertEqual(ByteCursor(bytes([0x80, 0x01])).read_uleb128(), 128)
        self.assertEqual(ByteCursor(bytes([0xe5, 0x8e, 0x26])).read_uleb128(), 624485)
        # Non-minimal encodings are accepted
        self.assertEqual(ByteCursor(bytes([0x82, 0x80, 0x00])).read_uleb128(), 2)

    def test_sleb128_known_values(self):
        self.assertEqual(ByteCursor(bytes([0x02])).read_sleb128(), 2)
        self.assertEqual(ByteCursor(bytes([0x7e])).read_sleb128(), -2)
        self.assertEqual(ByteCursor(bytes([0xff, 0x00])).read_sleb128(), 127)
        self.assertEqual(ByteCursor(bytes([0x81, 0x7f])).read_sleb128(), -127)
        self.assertEqual(ByteCursor(bytes([0xc0, 0xbb, 0x78])).read_sleb128(), -123456)

    def test_leb128_round_trip(self):
        for value in [0, 1, 63, 64, 127, 128, 255, 256, 0x3fff, 0x4000, 2**32 - 1, 2**32, 2**63, 2**64 - 1]:
            encoded = uleb128(value)
            cursor = ByteCursor(encoded)
            self.assertEqual(cursor.read_uleb128(), value, f"value={value}")
            self.assertTrue(cursor.at_end())

        for value in [0, 1, -1, 63, -64, 64, -65, 127, -128, 1000000, -1000000, 2**63 - 1, -2**63]:
            encoded = sleb128(value)
            cursor = ByteCursor(encoded)
            self.assertEqual(cursor.read_sleb128(), value, f"value={value}")
            self.assertTrue(cursor.at_end())

    def test_leb128_overflow(self):
        with self.assertRaises(Leb128OverflowError):
            ByteCursor(uleb128(2**64)).read_uleb128()
        with self.assertRaises(Leb128OverflowError):
            ByteCursor(b'\xff' * 10 + b'\x7f').read_uleb128()
        with self.assertRaises(Leb128OverflowError):
            ByteCursor(sleb128(2**63)).read_sleb128()
        with self.assertRaises(Leb128OverflowError):
            ByteCursor(sleb128(-2**63 - 1)).read_sleb128()

    def test_leb128_unterminated(self):
        cursor = ByteCursor(b'\x01\x80\x80')
        cursor.read_u8()
        with self.assertRaises(OutOfBoundsError):
            cursor.read_uleb128()
        self.assertEqual(cursor.tell(), 1)
        with self.assertRaises(OutOfBoundsError):
            cursor.read_sleb128()


if __name__ == '__main__':
    import unittest
    unittest.main()
