__all__ = [
    'get_default_val',
    'update_dict_recursive',
    'format_exception',
    'log_exception',
]


import traceback
import logging
from copy import deepcopy

from dwarfscope.tools.typing import *

T = TypeVar("T")


def get_default_val(v: Optional[T], default: T) -> T:
    if v is None:
        return default
    return v


def update_dict_recursive(d1: Dict[Any, Any], d2: Dict[Any, Any]) -> None:
    if not isinstance(d1, dict):
        raise ValueError("Cannot merge non-dictionnaries")
    if not isinstance(d2, dict):
        raise ValueError("Cannot merge non-dictionnaries")

    for k in d2.keys():
        if isinstance(d2[k], dict):
            if k not in d1:
                d1[k] = {}
            if isinstance(d1[k], dict):
                update_dict_recursive(d1[k], d2[k])
            else:
                # We're losing a value here
                d1[k] = deepcopy(d2[k])
        else:
            d1[k] = deepcopy(d2[k])


def format_exception(e: BaseException) -> str:
    return ''.join(traceback.format_exception(type(e), e, e.__traceback__))


def log_exception(logger: logging.Logger,
                  exc: BaseException,
                  msg: Optional[str] = None,
                  str_level: Optional[int] = logging.ERROR,
                  traceback_level: Optional[int] = logging.DEBUG) -> None:
    if str_level is not None:
        if logger.isEnabledFor(str_level):
            if msg is not None:
                error_str = f"{msg}\n  Underlying error: {exc}"
            else:
                error_str = str(exc)
            logger.log(str_level, error_str)

    if traceback_level is not None:
        if logger.isEnabledFor(traceback_level):
            logger.log(traceback_level, format_exception(exc))
