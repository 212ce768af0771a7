#    location.py
#        Minimal reading of location expressions. Only what is needed to find the
#        address of a variable with a static storage.
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

__all__ = ['get_static_address']

from dwarfscope.dwarf.byte_cursor import ByteCursor
from dwarfscope.dwarf.constants import Op
from dwarfscope.tools.typing import *


def get_static_address(expression: bytes,
                       address_size: int,
                       little_endian: bool = True,
                       resolve_address_index: Optional[Callable[[int], int]] = None
                       ) -> Optional[int]:
    """
    Return the address described by an expression of the form
    DW_OP_addr <addr> [DW_OP_plus_uconst <offset>]. None for any other expression
    (register based, computed, TLS, etc)
    """
    if len(expression) == 0:
        return None

    cursor = ByteCursor(expression, little_endian=little_endian)
    op = cursor.read_u8()
    if op == Op.DW_OP_addr:
        address = cursor.read_uint(address_size)
    elif op in (Op.DW_OP_addrx, Op.DW_OP_GNU_addr_index):
        if resolve_address_index is None:
            return None
        address = resolve_address_index(cursor.read_uleb128())
    else:
        return None

    while not cursor.at_end():
        op = cursor.read_u8()
        if op == Op.DW_OP_plus_uconst:
            address += cursor.read_uleb128()
        else:
            return None

    return address
