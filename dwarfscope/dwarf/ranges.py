#    ranges.py
#        Reads the non-contiguous address ranges referred by DW_AT_ranges.
#        .debug_ranges for DWARF 2 to 4, .debug_rnglists for DWARF 5
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

__all__ = ['read_debug_ranges', 'read_rnglist', 'get_rnglists_header_size']

from dwarfscope.dwarf.byte_cursor import ByteCursor
from dwarfscope.dwarf.constants import RangeListEntry
from dwarfscope.exceptions import MalformedRangeListError
from dwarfscope.tools.typing import *

AddressRange = Tuple[int, int]


def get_rnglists_header_size(offset_size: int) -> int:
    """Size of the header of a .debug_rnglists contribution. Default value of DW_AT_rnglists_base"""
    # unit_length + version(2) + address_size(1) + segment_selector_size(1) + offset_entry_count(4)
    return (4 if offset_size == 4 else 12) + 8


def read_debug_ranges(cursor: ByteCursor, address_size: int, base_address: int) -> List[AddressRange]:
    """Decode a DWARF 2-4 range list. Pairs of addresses, ended by (0, 0)"""
    max_address = (1 << (address_size * 8)) - 1
    ranges: List[AddressRange] = []
    while True:
        start = cursor.read_uint(address_size)
        end = cursor.read_uint(address_size)
        if start == 0 and end == 0:
            break
        if start == max_address:
            base_address = end  # Base address selection entry
            continue
        if end > start:
            ranges.append((base_address + start, base_address + end))
    return ranges


def read_rnglist(cursor: ByteCursor,
                 address_size: int,
                 base_address: int,
                 resolve_address_index: Callable[[int], int]
                 ) -> List[AddressRange]:
    """Decode a DWARF 5 range list, ended by DW_RLE_end_of_list"""
    ranges: List[AddressRange] = []
    while True:
        entry_offset = cursor.tell()
        kind = cursor.read_u8()
        start: int
        end: int
        if kind == RangeListEntry.DW_RLE_end_of_list:
            break
        elif kind == RangeListEntry.DW_RLE_base_addressx:
            base_address = resolve_address_index(cursor.read_uleb128())
            continue
        elif kind == RangeListEntry.DW_RLE_base_address:
            base_address = cursor.read_uint(address_size)
            continue
        elif kind == RangeListEntry.DW_RLE_startx_endx:
            start = resolve_address_index(cursor.read_uleb128())
            end = resolve_address_index(cursor.read_uleb128())
        elif kind == RangeListEntry.DW_RLE_startx_length:
            start = resolve_address_index(cursor.read_uleb128())
            end = start + cursor.read_uleb128()
        elif kind == RangeListEntry.DW_RLE_offset_pair:
            start = base_address + cursor.read_uleb128()
            end = base_address + cursor.read_uleb128()
        elif kind == RangeListEntry.DW_RLE_start_end:
            start = cursor.read_uint(address_size)
            end = cursor.read_uint(address_size)
        elif kind == RangeListEntry.DW_RLE_start_length:
            start = cursor.read_uint(address_size)
            end = start + cursor.read_uleb128()
        else:
            raise MalformedRangeListError(f"Unknown range list entry 0x{kind:x} at 0x{entry_offset:x}")

        if end > start:
            ranges.append((start, end))
    return ranges
