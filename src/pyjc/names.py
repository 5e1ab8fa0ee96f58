"""Conversion of user-visible names into automake-safe identifiers."""

import os
import re
import string

from pyjc.errors import InvalidNameError

C_SOURCE_SUFFIX = ".c"
STRIPPED_SUFFIXES = (".c", ".h", ".cc", ".cpp")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_]")


def to_am_var(name: str) -> str:
    """Return `name` with every character automake rejects replaced by `_`.

    The result has the same length as the input. Raises InvalidNameError
    for an empty name or one that starts with a digit.
    """
    cleaned = _UNSAFE_CHARS.sub("_", name)
    if not cleaned:
        raise InvalidNameError("name must not be empty")
    if cleaned[0] in string.digits:
        raise InvalidNameError(
            f"'{name}' cannot be used as an automake name: it starts with a digit"
        )
    return cleaned


def basename_no_ext(path: str) -> str:
    name = os.path.basename(str(path).rstrip("/\\"))
    for suffix in STRIPPED_SUFFIXES:
        if name.endswith(suffix) and len(name) > len(suffix):
            return name[: -len(suffix)]
    return name


def is_c_source(path: str) -> bool:
    return str(path).endswith(C_SOURCE_SUFFIX)
