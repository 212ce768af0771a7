#    die.py
#        A Debugging Information Entry: one node of the tree that describes a
#        compilation unit (function, variable, type, scope, etc).
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

__all__ = ['DIE']

from dwarfscope.dwarf.attribute import AttributeValue, ValueKind
from dwarfscope.dwarf.constants import Tag, At, format_enum_value
from dwarfscope.exceptions import DwarfError
from dwarfscope.tools.typing import *

if TYPE_CHECKING:
    from dwarfscope.dwarf.compilation_unit import CompilationUnit


class DIE:
    """
    An entry of the tree. Entries are owned by their compilation unit, which stores them
    in an arena. Reference attributes are offsets that are looked up in the arena on demand.
    """
    __slots__ = ('offset', 'tag', 'abbrev_code', 'has_children', 'attributes', 'size',
                 'cu', 'parent', 'children', 'index_in_parent', 'depth')

    offset: int     # Section-absolute offset. Identifies the entry
    tag: int
    abbrev_code: int
    has_children: bool
    attributes: Dict[int, AttributeValue]
    size: int
    cu: "CompilationUnit"
    parent: Optional["DIE"]
    children: List["DIE"]
    index_in_parent: int
    depth: int

    def __init__(self,
                 cu: "CompilationUnit",
                 offset: int,
                 tag: int,
                 abbrev_code: int,
                 has_children: bool,
                 attributes: Dict[int, AttributeValue],
                 size: int,
                 parent: Optional["DIE"] = None
                 ) -> None:
        self.cu = cu
        self.offset = offset
        self.tag = tag
        self.abbrev_code = abbrev_code
        self.has_children = has_children
        self.attributes = attributes
        self.size = size
        self.parent = parent
        self.children = []
        self.index_in_parent = 0
        self.depth = 0
        if parent is not None:
            self.index_in_parent = len(parent.children)
            self.depth = parent.depth + 1
            parent.children.append(self)

    @property
    def relative_offset(self) -> int:
        """Offset relative to the start of the unit"""
        return self.offset - self.cu.offset

    @property
    def tag_name(self) -> str:
        return format_enum_value(Tag, self.tag)

    def get_depth(self) -> int:
        return self.depth

    def is_root(self) -> bool:
        return self.parent is None

    def get_parent(self) -> Optional["DIE"]:
        return self.parent

    def iter_children(self) -> Iterator["DIE"]:
        return iter(self.children)

    def iter_descendants(self) -> Generator["DIE", None, None]:
        """Every entry below this one, depth first, in the order they appear in the section"""
        stack: List[Iterator[DIE]] = [iter(self.children)]
        while stack:
            die = next(stack[-1], None)
            if die is None:
                stack.pop()
                continue
            yield die
            if die.children:
                stack.append(iter(die.children))

    def get_sibling(self) -> Optional["DIE"]:
        if self.parent is None:
            return None
        siblings = self.parent.children
        if self.index_in_parent + 1 < len(siblings):
            return siblings[self.index_in_parent + 1]
        return None

    def get_previous_sibling(self) -> Optional["DIE"]:
        if self.parent is None or self.index_in_parent == 0:
            return None
        return self.parent.children[self.index_in_parent - 1]

    def has_attribute(self, attribute: int) -> bool:
        return attribute in self.attributes

    def get_attribute(self, attribute: int) -> Optional[AttributeValue]:
        return self.attributes.get(attribute, None)

    def get_int(self, attribute: int) -> Optional[int]:
        """Value of a constant, flag or section offset attribute"""
        attr = self.attributes.get(attribute, None)
        if attr is None:
            return None
        if attr.kind in (ValueKind.UNSIGNED, ValueKind.SIGNED, ValueKind.SECTION_OFFSET, ValueKind.FLAG):
            return int(attr.value)
        raise ValueError(f"Attribute {format_enum_value(At, attribute)} of {self} is not an integer ({attr.kind.name})")

    def get_flag(self, attribute: int) -> bool:
        attr = self.attributes.get(attribute, None)
        if attr is None:
            return False
        return bool(attr.value)

    def get_string(self, attribute: int) -> Optional[str]:
        attr = self.attributes.get(attribute, None)
        if attr is None:
            return None
        return self.cu.resolve_string_value(attr)

    def get_name(self) -> Optional[str]:
        return self.get_string(At.DW_AT_name)

    def get_linkage_name(self) -> Optional[str]:
        name = self.get_string(At.DW_AT_linkage_name)
        if name is None:
            name = self.get_string(At.DW_AT_MIPS_linkage_name)
        return name

    def get_address(self, attribute: int) -> Optional[int]:
        attr = self.attributes.get(attribute, None)
        if attr is None:
            return None
        return self.cu.resolve_address_value(attr)

    def get_die_from_attribute(self, attribute: int) -> Optional["DIE"]:
        """Follow a reference attribute. Returns None if the entry does not have the attribute"""
        attr = self.attributes.get(attribute, None)
        if attr is None:
            return None
        if not attr.is_reference():
            raise ValueError(f"Attribute {format_enum_value(At, attribute)} of {self} is not a reference ({attr.kind.name})")
        offset = int(attr.value)
        if self.cu.contains_offset(offset):
            return self.cu.get_die_at_offset(offset)
        return self.cu.dwarfinfo.get_die_at_offset(offset)

    def get_address_ranges(self) -> List[Tuple[int, int]]:
        """The [low, high) address ranges covered by this entry"""
        return self.cu.get_die_address_ranges(self)

    def __repr__(self) -> str:
        try:
            name = self.get_name()
        except (DwarfError, ValueError):
            name = None
        namestr = f' "{name}"' if name is not None else ''
        return f'<DIE {self.tag_name} <0x{self.offset:x}>{namestr}>'
