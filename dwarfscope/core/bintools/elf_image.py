#    elf_image.py
#        Reads the section table of a .elf file with pyelftools and exposes the
#        debug sections as views over the mapped file.
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

__all__ = ['ElfImage']

from elftools.elf.elffile import ELFFile
from elftools.common.exceptions import ELFError

import io
import os
import mmap
import logging
import types

from dwarfscope.core.sections import BaseSectionProvider, SectionRange, ByteStorage
from dwarfscope.exceptions import ElfImageError
from dwarfscope.tools.typing import *


class ElfImage(BaseSectionProvider):
    """
    Gives access to the sections of an ELF image. The container is parsed by pyelftools,
    the section content is never copied: every SectionRange points in the image storage
    """

    storage: ByteStorage
    elffile: ELFFile
    logger: logging.Logger
    _ranges: Dict[str, Optional[SectionRange]]
    _file: Optional[IO[bytes]]
    _mmap: Optional[mmap.mmap]

    def __init__(self, data: Union[bytes, bytearray]) -> None:
        self._file = None
        self._mmap = None
        self._attach(data, io.BytesIO(data))

    @classmethod
    def from_file(cls, filename: str) -> Self:
        """Map a file in memory and read its section table. The file stays open until close() is called"""
        if not os.path.isfile(filename):
            raise FileNotFoundError(f"File {filename} does not exist")

        image = cls.__new__(cls)
        f = open(filename, 'rb')
        try:
            mapped = mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ)
        except ValueError as e:     # Empty file
            f.close()
            raise ElfImageError(f"Cannot map {filename}. {e}")
        image._file = f
        image._mmap = mapped
        try:
            image._attach(mapped, f)
        except Exception:
            image.close()
            raise
        return image

    def _attach(self, storage: ByteStorage, stream: IO[bytes]) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)
        self.storage = storage
        self._ranges = {}
        try:
            self.elffile = ELFFile(stream)
        except ELFError as e:
            raise ElfImageError(f"Not a valid ELF image. {e}")
        self.logger.debug(f"Attached ELF image ({self.elffile.elfclass} bits, {self.get_machine_arch()}) "
                          f"with {self.elffile.num_sections()} sections")

    def section_bytes(self, name: str) -> Optional[SectionRange]:
        if name in self._ranges:
            return self._ranges[name]

        section_range: Optional[SectionRange] = None
        section = self.elffile.get_section_by_name(name)
        if section is not None:
            if section.header['sh_type'] == 'SHT_NOBITS':
                self.logger.debug(f"Section {name} has no content in the file")
            else:
                if section.compressed:
                    raise ElfImageError(f"Section {name} is compressed. Compressed sections are not supported")
                section_range = SectionRange(
                    name=name,
                    storage=self.storage,
                    base_offset=int(section.header['sh_offset']),
                    length=int(section.header['sh_size'])
                )
                section_range.validate()

        self._ranges[name] = section_range
        return section_range

    def is_little_endian(self) -> bool:
        return bool(self.elffile.little_endian)

    def get_elf_class(self) -> int:
        return int(self.elffile.elfclass)

    def get_machine_arch(self) -> str:
        return str(self.elffile.get_machine_arch())

    def has_dwarf_info(self) -> bool:
        return self.section_bytes('.debug_info') is not None

    def close(self) -> None:
        if self._mmap is not None:
            self._mmap.close()
            self._mmap = None
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self,
                 exc_type: Optional[Type[BaseException]],
                 exc_val: Optional[BaseException],
                 exc_tb: Optional[types.TracebackType]) -> None:
        self.close()
