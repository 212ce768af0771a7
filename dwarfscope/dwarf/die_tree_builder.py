#    die_tree_builder.py
#        Rebuilds the tree of entries of a compilation unit from the flat,
#        depth-first, null-terminated stream of .debug_info
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

__all__ = ['DieTreeBuilder']

import logging

from dwarfscope.dwarf.byte_cursor import ByteCursor
from dwarfscope.dwarf.abbreviation import AbbreviationTable
from dwarfscope.dwarf.attribute import AttributeDecoder, AttributeValue
from dwarfscope.dwarf.die import DIE
from dwarfscope.core.logging import DUMPDATA_LOGLEVEL
from dwarfscope.exceptions import TruncatedUnitError, MalformedEntryError, Leb128OverflowError
from dwarfscope.tools.typing import *

if TYPE_CHECKING:
    from dwarfscope.dwarf.compilation_unit import CompilationUnit


class DieTreeBuilder:
    """
    Decodes the entries of one unit. The tree is rebuilt with an explicit stack of parents:
    an entry that has children becomes the parent of the following entries until a null
    code closes its list of children.
    """

    cu: "CompilationUnit"
    abbrev_table: AbbreviationTable
    decoder: AttributeDecoder
    logger: logging.Logger

    def __init__(self, cu: "CompilationUnit", abbrev_table: AbbreviationTable, decoder: AttributeDecoder) -> None:
        self.cu = cu
        self.abbrev_table = abbrev_table
        self.decoder = decoder
        self.logger = logging.getLogger(self.__class__.__name__)

    def build(self, cursor: ByteCursor) -> List[DIE]:
        """Decode every entry of the cursor. Returns the entries in section order, the root first"""
        try:
            return self._build(cursor)
        except Leb128OverflowError as e:
            raise MalformedEntryError(f"Bad entry near 0x{cursor.tell():x}. {e}", self.cu.offset) from e

    def _build(self, cursor: ByteCursor) -> List[DIE]:
        dies: List[DIE] = []
        parents: List[DIE] = []
        root: Optional[DIE] = None
        dump = self.logger.isEnabledFor(DUMPDATA_LOGLEVEL)

        while not cursor.at_end():
            offset = cursor.tell()
            code = cursor.read_uleb128()
            if code == 0:
                if len(parents) > 0:
                    parents.pop()
                    continue
                if root is None:
                    continue    # Padding before the root
                break   # End of unit

            if root is not None and len(parents) == 0:
                self.logger.warning(f"Unit at 0x{self.cu.offset:x} has {cursor.remaining()} bytes of entries after its root. Ignored.")
                break

            decl = self.abbrev_table.get(code, self.cu.offset)
            attributes: Dict[int, AttributeValue] = {}
            for spec in decl.specs:
                value = self.decoder.decode(spec, cursor)
                if value is not None:
                    attributes[spec.attribute] = value

            die = DIE(
                cu=self.cu,
                offset=offset,
                tag=decl.tag,
                abbrev_code=code,
                has_children=decl.has_children,
                attributes=attributes,
                size=cursor.tell() - offset,
                parent=parents[-1] if len(parents) > 0 else None
            )
            if root is None:
                root = die
            dies.append(die)

            if dump:  # pragma: no cover
                pad = '|  ' * die.depth + '|--'
                self.logger.log(DUMPDATA_LOGLEVEL, f"{pad}{die.tag_name} <0x{offset:x}> ({len(attributes)} attributes)")

            if decl.has_children:
                parents.append(die)

        if len(parents) > 0:
            raise TruncatedUnitError(f"Unit ends with {len(parents)} unterminated list(s) of children. "
                                     f"Last open entry is at 0x{parents[-1].offset:x}", self.cu.offset)

        if root is None:
            raise TruncatedUnitError("Unit has no entry", self.cu.offset)

        return dies
