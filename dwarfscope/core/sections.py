#    sections.py
#        Views over the sections of an object image and the interface used to look them up
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

__all__ = [
    'ByteStorage',
    'SectionRange',
    'BaseSectionProvider',
    'InMemorySectionProvider'
]

import abc
import mmap
from dataclasses import dataclass

from dwarfscope.exceptions import ElfImageError
from dwarfscope.tools.typing import *

ByteStorage = Union[bytes, bytearray, mmap.mmap]


@dataclass(frozen=True)
class SectionRange:
    """
    A window over the byte storage of an image. The storage is borrowed, never copied,
    and must stay alive (and unmodified) as long as the range is in use.
    """
    name: str
    storage: ByteStorage
    base_offset: int
    length: int

    @property
    def end_offset(self) -> int:
        return self.base_offset + self.length

    def validate(self) -> None:
        """Make sure the range lies within its storage"""
        if self.base_offset < 0 or self.length < 0:
            raise ElfImageError(f"Section {self.name} has a negative offset or length")
        if self.end_offset > len(self.storage):
            raise ElfImageError(f"Section {self.name} (0x{self.base_offset:x}-0x{self.end_offset:x}) "
                                f"lies outside of the image (size=0x{len(self.storage):x})")

    def tobytes(self) -> bytes:
        """Make a copy of the section content"""
        return bytes(self.storage[self.base_offset:self.end_offset])

    def __len__(self) -> int:
        return self.length

    def __repr__(self) -> str:
        return f'<SectionRange {self.name}: 0x{self.base_offset:x} (size=0x{self.length:x})>'


class BaseSectionProvider(abc.ABC):
    """Gives access to the sections of an already validated object image"""

    @abc.abstractmethod
    def section_bytes(self, name: str) -> Optional[SectionRange]:
        """Return the byte range of a section, or None if the image does not have it"""
        raise NotImplementedError('Trying to read a section with the base class')

    def is_little_endian(self) -> bool:
        return True


class InMemorySectionProvider(BaseSectionProvider):
    """Serves sections stored in memory. All sections are packed in a single buffer."""

    _storage: bytes
    _ranges: Dict[str, SectionRange]
    _little_endian: bool

    def __init__(self, sections: Mapping[str, bytes], little_endian: bool = True) -> None:
        self._storage = b''.join(sections.values())
        self._ranges = {}
        self._little_endian = little_endian
        offset = 0
        for name, data in sections.items():
            section = SectionRange(name=name, storage=self._storage, base_offset=offset, length=len(data))
            section.validate()
            self._ranges[name] = section
            offset += len(data)

    def section_bytes(self, name: str) -> Optional[SectionRange]:
        return self._ranges.get(name, None)

    def is_little_endian(self) -> bool:
        return self._little_endian
