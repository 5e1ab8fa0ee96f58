"""Line model, scanner and atomic I/O for automake input files.

A build file is handled as a sequence of `Line` records. Each record keeps
its own terminator, so joining the records reproduces the original text
byte for byte. Physical lines joined by a trailing backslash are grouped
into a `LogicalLine` before they are matched against variable names.
"""

import os
import re
import stat
import tempfile
from pathlib import Path
from typing import Iterable, Iterator, NamedTuple, Optional, Sequence, Tuple, TypeAlias

from pyjc.errors import BuildFileIOError, MissingFileError

NEW_FILE_MODE = 0o644
LF = "\n"
CRLF = "\r\n"

_ASSIGNMENT_RE = re.compile(
    r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*(\+=|:=|\?=|=)(.*)$", re.DOTALL
)


def ends_with_backslash(text: str) -> bool:
    trailing = len(text) - len(text.rstrip("\\"))
    return trailing % 2 == 1


def strip_continuation(text: str) -> str:
    """Drop an unescaped trailing backslash that has no line left to join."""
    if ends_with_backslash(text):
        return text[:-1]
    return text


PathLike: TypeAlias = Path | str


class Line(NamedTuple):
    text: str
    eol: str

    @property
    def terminated(self) -> bool:
        return bool(self.eol)

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()

    def continues(self) -> bool:
        """True when a backslash joins this line to the next one."""
        if not self.terminated:
            return False
        return ends_with_backslash(self.text)

    def render(self) -> str:
        return self.text + self.eol


class LogicalLine(NamedTuple):
    start: int
    lines: Tuple[Line, ...]

    @property
    def end(self) -> int:
        return self.start + len(self.lines)

    @property
    def text(self) -> str:
        parts = [line.text[:-1] for line in self.lines[:-1]]
        parts.append(strip_continuation(self.lines[-1].text))
        return " ".join(parts)

    @property
    def is_blank(self) -> bool:
        return len(self.lines) == 1 and self.lines[0].is_blank


class Assignment(NamedTuple):
    name: str
    op: str
    value: str


def iter_lines(text: str) -> Iterator[Line]:
    """Yield the lines of `text`; `join_lines` is the exact inverse."""
    pieces = text.split(LF)
    for piece in pieces[:-1]:
        if piece.endswith("\r"):
            yield Line(piece[:-1], CRLF)
        else:
            yield Line(piece, LF)
    if pieces[-1]:
        yield Line(pieces[-1], "")


def join_lines(lines: Iterable[Line]) -> str:
    return "".join(line.render() for line in lines)


def logical_lines(lines: Sequence[Line]) -> list[LogicalLine]:
    grouped = []
    start = 0
    while start < len(lines):
        end = start
        while end < len(lines) - 1 and lines[end].continues():
            end += 1
        grouped.append(LogicalLine(start, tuple(lines[start : end + 1])))
        start = end + 1
    return grouped


def split_comment(text: str) -> Tuple[str, str]:
    """Split `text` at the first unescaped `#` into (code, comment)."""
    index = 0
    while index < len(text):
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if char == "#":
            return text[:index], text[index:]
        index += 1
    return text, ""


def _match_assignment(text: str) -> Optional[re.Match]:
    # Recipe lines start with a tab and never define variables.
    if text.startswith("\t"):
        return None
    code, _ = split_comment(text)
    return _ASSIGNMENT_RE.match(code)


def parse_assignment(text: str) -> Optional[Assignment]:
    match = _match_assignment(text)
    if not match:
        return None
    return Assignment(match.group(1), match.group(2), match.group(3))


def rhs_offset(text: str) -> Optional[int]:
    """Index in `text` where the right-hand side of an assignment starts."""
    match = _match_assignment(text)
    if not match:
        return None
    return match.end(2)


def is_assignment_of(text: str, target: str) -> bool:
    """Match an assignment to `target`.

    A target that starts with an underscore is a suffix such as `_SOURCES`
    and matches any longer name ending with it; anything else must equal
    the variable name.
    """
    assignment = parse_assignment(text)
    if assignment is None:
        return False
    if target.startswith("_"):
        return assignment.name.endswith(target) and len(assignment.name) > len(
            target
        )
    return assignment.name == target


def rhs_tokens(text: str) -> list[str]:
    assignment = parse_assignment(text)
    if assignment is None:
        return []
    return strip_continuation(assignment.value).split()


def contains_word(text: str, token: str) -> bool:
    return token in rhs_tokens(text)


def read_build_file(path: PathLike) -> str:
    """Return the contents of a build file without newline translation."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        raise MissingFileError(f"{path} not found") from None
    except OSError as exc:
        raise BuildFileIOError(f"failed to read {path}: {exc}") from exc
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise BuildFileIOError(f"{path} is not valid UTF-8: {exc}") from exc


def _discard_temporary(name: str) -> None:
    try:
        os.unlink(name)
    except OSError:
        pass


def write_atomic(path: PathLike, text: str) -> None:
    """Replace `path` with `text` through a sibling temporary file.

    Readers see either the old file or the complete new one. The
    permission bits of an existing file are kept; new files get 0644.
    """
    path = Path(path)
    try:
        mode = stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        mode = NEW_FILE_MODE
    except OSError as exc:
        raise BuildFileIOError(f"failed to stat {path}: {exc}") from exc

    directory = path.parent
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=str(directory)
        )
    except OSError as exc:
        raise BuildFileIOError(f"failed to write {path}: {exc}") from exc

    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(text.encode("utf-8"))
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except OSError as exc:
        _discard_temporary(tmp_name)
        raise BuildFileIOError(f"failed to write {path}: {exc}") from exc
    except BaseException:
        _discard_temporary(tmp_name)
        raise
