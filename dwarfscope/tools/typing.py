#    typing.py
#        Some typing helpers
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

__all__ = ['Self', 'List', 'Set', 'Dict', 'Union', 'Optional', 'Any', 'cast', 'Iterable',
           'Iterator', 'Sequence', 'Callable', 'TypedDict', 'Literal', 'Mapping',
           'TypeVar', 'TYPE_CHECKING', 'Generator', 'Tuple', 'Type', 'IO']

import sys

if sys.version_info >= (3, 11):
    from typing import Self
else:
    # setup.py installs typing_extensions on python < 3.11
    from typing_extensions import Self

from typing import (
    List,
    Set,
    Dict,
    Union,
    Optional,
    Any,
    cast,
    Iterable,
    Iterator,
    Sequence,
    Callable,
    TypedDict,
    Literal,
    Mapping,
    TypeVar,
    TYPE_CHECKING,
    Generator,
    Tuple,
    Type,
    IO,
)
