#    byte_cursor.py
#        Bounds-checked sequential reader over a section of an image.
#        Every read of the package goes through this class.
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

__all__ = ['ByteCursor']

from dwarfscope.core.sections import SectionRange, ByteStorage
from dwarfscope.exceptions import OutOfBoundsError, Leb128OverflowError
from dwarfscope.tools.typing import *

UINT64_MAX = (1 << 64) - 1
INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1


class ByteCursor:
    """
    Reads a window [start, end) of a byte storage. Positions are expressed relative to
    an origin, normally the start of the section, so that tell() gives section offsets.
    A read that would cross the end of the window raises OutOfBoundsError and leaves the
    position untouched.
    """
    __slots__ = ('_data', '_origin', '_start', '_end', '_pos', '_byteorder')

    _data: ByteStorage
    _origin: int
    _start: int
    _end: int
    _pos: int
    _byteorder: Literal['little', 'big']

    def __init__(self,
                 data: ByteStorage,
                 start: int = 0,
                 end: Optional[int] = None,
                 origin: Optional[int] = None,
                 little_endian: bool = True
                 ) -> None:
        if end is None:
            end = len(data)
        if start < 0 or end < start or end > len(data):
            raise OutOfBoundsError(f"Invalid cursor window 0x{start:x}-0x{end:x} over {len(data)} bytes")
        self._data = data
        self._start = start
        self._end = end
        self._pos = start
        self._origin = start if origin is None else origin
        self._byteorder = 'little' if little_endian else 'big'

    @classmethod
    def from_section(cls, section: SectionRange, little_endian: bool = True) -> "ByteCursor":
        return cls(section.storage, start=section.base_offset, end=section.end_offset, little_endian=little_endian)

    @property
    def little_endian(self) -> bool:
        return self._byteorder == 'little'

    def tell(self) -> int:
        """Position relative to the origin"""
        return self._pos - self._origin

    def seek(self, offset: int) -> None:
        """Move to a position relative to the origin. Must land within the window"""
        pos = self._origin + offset
        if pos < self._start or pos > self._end:
            raise OutOfBoundsError(f"Cannot seek to 0x{offset:x}. Window is 0x{self.start_offset:x}-0x{self.end_offset:x}")
        self._pos = pos

    @property
    def start_offset(self) -> int:
        return self._start - self._origin

    @property
    def end_offset(self) -> int:
        return self._end - self._origin

    def remaining(self) -> int:
        return self._end - self._pos

    def at_end(self) -> bool:
        return self._pos >= self._end

    def _require(self, size: int) -> None:
        if size < 0:
            raise OutOfBoundsError(f"Cannot read a negative size ({size})")
        if self._pos + size > self._end:
            raise OutOfBoundsError(f"Reading {size} bytes at 0x{self.tell():x} crosses the end of the range "
                                   f"(0x{self.end_offset:x})")

    def skip(self, size: int) -> None:
        self._require(size)
        self._pos += size

    def read_bytes(self, size: int) -> bytes:
        self._require(size)
        data = bytes(self._data[self._pos:self._pos + size])
        self._pos += size
        return data

    def read_uint(self, size: int) -> int:
        """Read an unsigned integer of any width between 1 and 8 bytes"""
        if size < 1 or size > 8:
            raise ValueError(f"Unsupported integer size {size}")
        self._require(size)
        val = int.from_bytes(self._data[self._pos:self._pos + size], self._byteorder, signed=False)
        self._pos += size
        return val

    def read_sint(self, size: int) -> int:
        if size < 1 or size > 8:
            raise ValueError(f"Unsupported integer size {size}")
        self._require(size)
        val = int.from_bytes(self._data[self._pos:self._pos + size], self._byteorder, signed=True)
        self._pos += size
        return val

    def read_u8(self) -> int:
        self._require(1)
        val = self._data[self._pos]
        self._pos += 1
        return val

    def read_u16(self) -> int:
        return self.read_uint(2)

    def read_u32(self) -> int:
        return self.read_uint(4)

    def read_u64(self) -> int:
        return self.read_uint(8)

    def read_s8(self) -> int:
        return self.read_sint(1)

    def read_s16(self) -> int:
        return self.read_sint(2)

    def read_s32(self) -> int:
        return self.read_sint(4)

    def read_s64(self) -> int:
        return self.read_sint(8)

    def _read_leb128(self) -> Tuple[int, int, int]:
        """Return (payload, bit count, last byte) without interpreting the sign"""
        pos = self._pos
        result = 0
        shift = 0
        while True:
            if pos >= self._end:
                raise OutOfBoundsError(f"Unterminated LEB128 value at 0x{self.tell():x}")
            byte = self._data[pos]
            pos += 1
            result |= (byte & 0x7f) << shift
            shift += 7
            if byte & 0x80 == 0:
                break
        self._pos = pos
        return result, shift, byte

    def read_uleb128(self) -> int:
        start = self.tell()
        val, _, _ = self._read_leb128()
        if val > UINT64_MAX:
            raise Leb128OverflowError(f"Unsigned LEB128 value at 0x{start:x} does not fit in 64 bits")
        return val

    def read_sleb128(self) -> int:
        start = self.tell()
        val, shift, last_byte = self._read_leb128()
        if last_byte & 0x40:
            val -= (1 << shift)
        if val < INT64_MIN or val > INT64_MAX:
            raise Leb128OverflowError(f"Signed LEB128 value at 0x{start:x} does not fit in 64 bits")
        return val

    def read_cstring(self) -> bytes:
        """Read until a null terminator. The terminator is consumed, but not returned"""
        terminator = self._data.find(b'\x00', self._pos, self._end)
        if terminator < 0:
            raise OutOfBoundsError(f"Unterminated string at 0x{self.tell():x}")
        data = bytes(self._data[self._pos:terminator])
        self._pos = terminator + 1
        return data

    def slice(self, size: int) -> "ByteCursor":
        """Return a cursor over the next size bytes and move past them"""
        self._require(size)
        sub = ByteCursor(self._data, start=self._pos, end=self._pos + size, origin=self._origin,
                         little_endian=self.little_endian)
        self._pos += size
        return sub

    def copy(self) -> "ByteCursor":
        """A new cursor with the same window and position"""
        other = ByteCursor(self._data, start=self._start, end=self._end, origin=self._origin,
                           little_endian=self.little_endian)
        other._pos = self._pos
        return other

    def __repr__(self) -> str:
        return f'<ByteCursor: 0x{self.tell():x} in 0x{self.start_offset:x}-0x{self.end_offset:x}>'
