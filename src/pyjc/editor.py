"""Edits applied to the text of a Makefile.am.

Every edit takes the current buffer and returns the new one. Lines the
edit does not target are copied through untouched, together with their
terminators, and the presence of a final newline is kept. An edit that
has nothing to do returns the input string itself, which callers use to
detect that the requested entry was already there.
"""

import re
from typing import Mapping, Optional, Sequence

from pyjc.amfile import (
    LF,
    Line,
    LogicalLine,
    contains_word,
    ends_with_backslash,
    is_assignment_of,
    iter_lines,
    join_lines,
    logical_lines,
    parse_assignment,
    rhs_offset,
    rhs_tokens,
    split_comment,
)
from pyjc.errors import InvalidNameError, NoProgramError, NoTargetError
from pyjc.names import to_am_var

SOURCES_SUFFIX = "_SOURCES"
LDFLAGS_SUFFIX = "_LDFLAGS"
LDADD_SUFFIX = "_LDADD"
BIN_PROGRAMS = "bin_PROGRAMS"
CHECK_PROGRAMS = "check_PROGRAMS"
TESTS = "TESTS"
TESTS_CONDITIONAL = "ENABLE_TESTS"
PER_PROGRAM_SUFFIXES = ("_SOURCES", "_CFLAGS", "_CPPFLAGS", "_LDADD", "_LDFLAGS")
TEST_CFLAGS = "-I$(top_srcdir)/src $(CHECK_CFLAGS) -Wall -Wextra -g"
TEST_LDADD = "$(CHECK_LIBS)"

TEST_MAKEFILE_SKELETON = (
    "if ENABLE_TESTS\n"
    "\n"
    "# Check framework based tests\n"
    "check_PROGRAMS =\n"
    "\n"
    "TESTS =\n"
    "\n"
    "endif\n"
)

_LIBRARY_NAME = re.compile(r"^[A-Za-z0-9_.+-]+$")
_EMPTY_CONTINUATION = re.compile(r"[ \t]*\\")
_CONTINUATION_TAIL = re.compile(r"[ \t]*\\$")


def _require_word(value: str, what: str) -> None:
    if not value or any(char.isspace() for char in value):
        raise InvalidNameError(f"{what} must be a non-empty word, got {value!r}")


def _terminate(lines: list[Line]) -> None:
    if lines and not lines[-1].terminated:
        lines[-1] = lines[-1]._replace(eol=LF)


def _render(original: Sequence[Line], edited: list[Line]) -> str:
    """Join `edited`, giving its last line the final terminator of `original`."""
    if original and edited:
        last = edited[-1]
        if original[-1].terminated and not last.terminated:
            edited[-1] = last._replace(eol=LF)
        elif not original[-1].terminated and last.terminated:
            edited[-1] = last._replace(eol="")
    return join_lines(edited)


def _emit(
    logical: Sequence[LogicalLine],
    replacements: Mapping[int, list[Line]],
    insert_after: Optional[int] = None,
    inserted: Sequence[Line] = (),
) -> list[Line]:
    edited: list[Line] = []
    for index, entry in enumerate(logical):
        edited.extend(replacements.get(index, entry.lines))
        if index == insert_after:
            _terminate(edited)
            edited.extend(inserted)
    return edited


def _append_word(text: str, word: str) -> str:
    code, comment = split_comment(text)
    if not comment and ends_with_backslash(code):
        # A dangling continuation on the last line stays the last character.
        head = code[:-1]
        stripped = head.rstrip()
        gap = head[len(stripped) :] or " "
        return f"{stripped} {word}{gap}\\"
    if comment:
        stripped = code.rstrip()
        gap = code[len(stripped) :] or " "
        return f"{stripped} {word}{gap}{comment}"
    if code and code[-1].isspace():
        return code + word
    return f"{code} {word}"


def _append_to_logical(entry: LogicalLine, word: str) -> list[Line]:
    segments = list(entry.lines)
    last = segments[-1]
    segments[-1] = last._replace(text=_append_word(last.text, word))
    return segments


def _drop_word(text: str, word: str, offset: int) -> str:
    code, comment = split_comment(text)
    stripped = code.rstrip()
    gap = code[len(stripped) :]
    head, rhs = stripped[:offset], stripped[offset:]
    pattern = re.compile(r"(?<!\S)" + re.escape(word) + r"(?!\S)")
    if not pattern.search(rhs):
        return text
    while True:
        match = pattern.search(rhs)
        if not match:
            break
        before = rhs[: match.start()]
        rest = rhs[match.end() :].lstrip(" \t")
        rhs = before + rest if rest else before.rstrip(" \t")
    result = head + rhs
    if comment:
        return f"{result}{gap or ' '}{comment}"
    return result


def _remove_from_logical(entry: LogicalLine, word: str) -> list[Line]:
    rebuilt: list[Line] = []
    last_index = len(entry.lines) - 1
    for index, line in enumerate(entry.lines):
        offset = (rhs_offset(line.text) or 0) if index == 0 else 0
        text = _drop_word(line.text, word, offset)
        if text == line.text:
            rebuilt.append(line)
            continue
        if index > 0 and index < last_index and _EMPTY_CONTINUATION.fullmatch(text):
            continue
        if index > 0 and index == last_index and not text.strip():
            previous = rebuilt[-1]
            rebuilt[-1] = Line(_CONTINUATION_TAIL.sub("", previous.text), line.eol)
            continue
        rebuilt.append(line._replace(text=text))
    return rebuilt


def _first_assignment(
    logical: Sequence[LogicalLine], target: str, start: int = 0, stop: Optional[int] = None
) -> Optional[int]:
    stop = len(logical) if stop is None else stop
    for index in range(start, stop):
        if is_assignment_of(logical[index].text, target):
            return index
    return None


def _code_words(entry: LogicalLine) -> list[str]:
    if entry.lines[0].text.startswith("\t"):
        return []
    code, _ = split_comment(entry.text)
    return code.split()


def _conditional_scope(
    logical: Sequence[LogicalLine], condition: str
) -> Optional[tuple[int, int]]:
    """Return the (start, stop) range of the body of `if <condition>`."""
    for index, entry in enumerate(logical):
        if _code_words(entry)[:2] != ["if", condition]:
            continue
        depth = 0
        for inner in range(index + 1, len(logical)):
            words = _code_words(logical[inner])
            if not words:
                continue
            if words[0] == "if":
                depth += 1
            elif words[0] == "endif":
                if depth == 0:
                    return index + 1, inner
                depth -= 1
        return index + 1, len(logical)
    return None


def add_word(text: str, variable: str, word: str) -> str:
    """Append `word` to the first assignment of `variable` (name or suffix).

    Returns `text` unchanged when any assignment of `variable` already
    lists the word; raises NoTargetError when there is no such assignment.
    """
    _require_word(word, "value")
    lines = list(iter_lines(text))
    logical = logical_lines(lines)
    first = None
    for index, entry in enumerate(logical):
        if not is_assignment_of(entry.text, variable):
            continue
        if contains_word(entry.text, word):
            return text
        if first is None:
            first = index
    if first is None:
        raise NoTargetError(f"no {variable} assignment found")
    edited = _emit(logical, {first: _append_to_logical(logical[first], word)})
    return _render(lines, edited)


def add_source(text: str, filename: str) -> str:
    _require_word(filename, "source file name")
    return add_word(text, SOURCES_SUFFIX, filename)


def library_flag(libname: str) -> str:
    if not libname or not _LIBRARY_NAME.match(libname):
        raise InvalidNameError(f"invalid library name {libname!r}")
    return f"-l{libname}"


def add_dependency(text: str, libname: str) -> str:
    """Add `-l<libname>` to the link flags of the program.

    The first `_LDFLAGS` assignment wins over the first `_LDADD` one. When
    neither exists a `<program>_LDFLAGS` line is appended for the program
    named by `bin_PROGRAMS`.
    """
    flag = library_flag(libname)
    lines = list(iter_lines(text))
    logical = logical_lines(lines)

    first_ldflags = None
    first_ldadd = None
    program = None
    for index, entry in enumerate(logical):
        assignment = parse_assignment(entry.text)
        if assignment is None:
            continue
        is_ldflags = is_assignment_of(entry.text, LDFLAGS_SUFFIX)
        is_ldadd = is_assignment_of(entry.text, LDADD_SUFFIX)
        if (is_ldflags or is_ldadd) and flag in assignment.value.split():
            return text
        if is_ldflags and first_ldflags is None:
            first_ldflags = index
        elif is_ldadd and first_ldadd is None:
            first_ldadd = index
        elif assignment.name == BIN_PROGRAMS and program is None:
            programs = assignment.value.split()
            if programs:
                program = programs[0]

    target = first_ldflags if first_ldflags is not None else first_ldadd
    if target is not None:
        edited = _emit(logical, {target: _append_to_logical(logical[target], flag)})
        return _render(lines, edited)

    if program is None:
        raise NoProgramError(
            f"cannot add {flag}: no {BIN_PROGRAMS} program and no "
            f"{LDFLAGS_SUFFIX} or {LDADD_SUFFIX} variable found"
        )
    edited = list(lines)
    _terminate(edited)
    if edited and not edited[-1].is_blank:
        edited.append(Line("", LF))
    edited.append(Line(f"{to_am_var(program)}{LDFLAGS_SUFFIX} = {flag}", LF))
    return join_lines(edited)


def add_test(text: Optional[str], program: str, test_filename: str) -> str:
    """Register a check program and give it its own build variables.

    `text` is None when the tests Makefile.am does not exist yet; the
    skeleton with an `if ENABLE_TESTS` block is edited instead.
    """
    _require_word(program, "test program name")
    _require_word(test_filename, "test file name")
    if text is None:
        text = TEST_MAKEFILE_SKELETON
    prefix = to_am_var(program)
    lines = list(iter_lines(text))
    logical = logical_lines(lines)

    for entry in logical:
        if is_assignment_of(entry.text, CHECK_PROGRAMS) and contains_word(
            entry.text, program
        ):
            return text

    start, stop = 0, len(logical)
    scope = _conditional_scope(logical, TESTS_CONDITIONAL)
    if scope is not None and _first_assignment(logical, CHECK_PROGRAMS, *scope) is not None:
        start, stop = scope

    programs_at = _first_assignment(logical, CHECK_PROGRAMS, start, stop)
    if programs_at is None:
        raise NoTargetError(f"no {CHECK_PROGRAMS} assignment found")
    tests_at = _first_assignment(logical, TESTS, start, stop)
    if tests_at is None:
        tests_at = _first_assignment(logical, TESTS)
    if tests_at is None:
        raise NoTargetError(f"no {TESTS} assignment found")

    anchor = programs_at
    for index in range(programs_at + 1, stop):
        if logical[index].is_blank:
            anchor = index
            break

    block = [
        Line(f"{prefix}_SOURCES = {test_filename}", LF),
        Line(f"{prefix}_CFLAGS = {TEST_CFLAGS}", LF),
        Line(f"{prefix}_LDADD = {TEST_LDADD}", LF),
    ]
    replacements = {
        programs_at: _append_to_logical(logical[programs_at], program),
        tests_at: _append_to_logical(logical[tests_at], program),
    }
    edited = _emit(logical, replacements, insert_after=anchor, inserted=block)
    return _render(lines, edited)


def remove_test(text: str, program: str) -> str:
    """Undo `add_test` for `program`.

    A blank line that directly follows a deleted block is dropped when the
    block itself came right after a blank line, so repeated add/remove
    cycles do not pile up empty lines.
    """
    _require_word(program, "test program name")
    prefix = to_am_var(program)
    owned = {f"{prefix}{suffix}" for suffix in PER_PROGRAM_SUFFIXES}
    lines = list(iter_lines(text))

    edited: list[Line] = []
    changed = False
    in_deleted_block = False
    skip_next_empty_line = False
    for entry in logical_lines(lines):
        assignment = parse_assignment(entry.text)
        if assignment is not None and assignment.name in owned:
            if not in_deleted_block:
                skip_next_empty_line = not edited or edited[-1].is_blank
            in_deleted_block = True
            changed = True
            continue
        if in_deleted_block and skip_next_empty_line and entry.is_blank:
            in_deleted_block = False
            skip_next_empty_line = False
            continue
        in_deleted_block = False
        skip_next_empty_line = False

        if (
            assignment is not None
            and assignment.name in (CHECK_PROGRAMS, TESTS)
            and program in rhs_tokens(entry.text)
        ):
            edited.extend(_remove_from_logical(entry, program))
            changed = True
            continue
        edited.extend(entry.lines)

    if not changed:
        return text
    return _render(lines, edited)


def first_program(text: str) -> Optional[str]:
    """Return the first program listed in `bin_PROGRAMS`, if any."""
    for entry in logical_lines(list(iter_lines(text))):
        if is_assignment_of(entry.text, BIN_PROGRAMS):
            programs = rhs_tokens(entry.text)
            if programs:
                return programs[0]
    return None
