import logging
import unittest

from dwarfscope.dwarf.die import DIE

__dwarfscope__ = True  # we need something to know if we loaded dwarfscope "test" module or something else (such as python "test" module)
logger = logging.getLogger('unittest')


class PrintableBytes(bytes):
    def __repr__(self) -> str:
        return 'bytes(' + self.hex() + ')'


class PrintableByteArray(bytearray):
    def __repr__(self) -> str:
        return 'bytearray(' + bytes(self).hex() + ')'


class DwarfScopeUnitTest(unittest.TestCase):

    def assertEqual(self, v1, v2, *args, **kwargs):
        if isinstance(v1, bytes) and isinstance(v2, bytes):
            super().assertEqual(PrintableBytes(v1), PrintableBytes(v2), *args, **kwargs)
        elif isinstance(v1, bytearray) and isinstance(v2, bytearray):
            super().assertEqual(PrintableByteArray(v1), PrintableByteArray(v2), *args, **kwargs)
        else:
            super().assertEqual(v1, v2, *args, **kwargs)

    def assertNotEqual(self, v1, v2, *args, **kwargs):
        if isinstance(v1, bytes) and isinstance(v2, bytes):
            super().assertNotEqual(PrintableBytes(v1), PrintableBytes(v2), *args, **kwargs)
        elif isinstance(v1, bytearray) and isinstance(v2, bytearray):
            super().assertNotEqual(PrintableByteArray(v1), PrintableByteArray(v2), *args, **kwargs)
        else:
            super().assertNotEqual(v1, v2, *args, **kwargs)

    def assert_tree_consistent(self, root: DIE):
        """Every child points back to its parent and walking up always reaches the root"""
        self.assertIsNone(root.parent)
        for die in root.iter_descendants():
            self.assertIsNotNone(die.parent)
            self.assertIs(die.parent.children[die.index_in_parent], die)
            self.assertEqual(die.depth, die.parent.depth + 1)

            seen = set()
            current = die
            while current.parent is not None:
                self.assertNotIn(current.offset, seen)
                seen.add(current.offset)
                current = current.parent
            self.assertIs(current, root)
