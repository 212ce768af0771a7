#    exceptions.py
#        Every error that the debug information reader can raise
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

__all__ = [
    'DwarfError',
    'OutOfBoundsError',
    'Leb128OverflowError',
    'UnitError',
    'MalformedAbbrevError',
    'UnknownAbbreviationCodeError',
    'TruncatedUnitError',
    'UnsupportedFormError',
    'BadUnitHeaderError',
    'MalformedEntryError',
    'CorruptSectionLengthError',
    'DanglingReferenceError',
    'BadStringOffsetError',
    'MalformedLineProgramError',
    'MalformedRangeListError',
    'ElfImageError',
]

from dwarfscope.tools.typing import *


class DwarfError(Exception):
    """Base class of every error raised while reading debug information"""
    pass


class OutOfBoundsError(DwarfError):
    """A read would cross the end of its byte range"""
    pass


class Leb128OverflowError(DwarfError):
    """A LEB128 value does not fit in 64 bits"""
    pass


class UnitError(DwarfError):
    """An error that invalidates a single compilation unit.
    The index can skip the unit and continue with the next one when asked to."""

    unit_offset: Optional[int]

    def __init__(self, msg: str, unit_offset: Optional[int] = None) -> None:
        super().__init__(msg)
        self.unit_offset = unit_offset

    def __str__(self) -> str:
        msg = super().__str__()
        if self.unit_offset is not None:
            msg = f"{msg} (unit at 0x{self.unit_offset:x})"
        return msg


class MalformedAbbrevError(UnitError):
    pass


class UnknownAbbreviationCodeError(UnitError):
    pass


class TruncatedUnitError(UnitError):
    pass


class UnsupportedFormError(UnitError):
    pass


class BadUnitHeaderError(UnitError):
    pass


class MalformedEntryError(UnitError):
    """An entry of the unit holds a value that cannot be decoded"""
    pass


class CorruptSectionLengthError(OutOfBoundsError, UnitError):
    """The length field of a unit places its end past the end of the section"""

    def __init__(self, msg: str, unit_offset: Optional[int] = None) -> None:
        UnitError.__init__(self, msg, unit_offset)


class DanglingReferenceError(DwarfError):
    """A reference attribute does not land on the offset of an entry"""
    pass


class BadStringOffsetError(DwarfError):
    pass


class MalformedLineProgramError(DwarfError):
    pass


class MalformedRangeListError(DwarfError):
    pass


class ElfImageError(DwarfError):
    """The container cannot provide the requested section"""
    pass
