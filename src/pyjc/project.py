"""Project-level edit operations behind `jc add` and `jc test`.

Every operation first checks that the project root holds `configure.ac`,
computes the new Makefile.am text with `pyjc.editor` and only then
touches the disk. Build files are replaced through `write_atomic`, so a
failure leaves them as they were. Errors are raised as `JcError`
subclasses; a requested entry that is already present is reported with
`info()` and counts as success.
"""

import os
import shutil
from pathlib import Path
from typing import Iterable, Optional, TypeAlias

from pyjc import editor
from pyjc.amfile import read_build_file, write_atomic
from pyjc.console import info
from pyjc.errors import (
    AlreadyExistsError,
    BuildFileIOError,
    InvalidNameError,
    MissingDirectoryError,
    MissingFileError,
    NoTargetError,
    NotAProjectError,
)
from pyjc.names import basename_no_ext, is_c_source, to_am_var
from pyjc.scaffold import render_template

PROJECT_MARKERS = ("configure.ac", "configure.in")
MAKEFILE_AM = "Makefile.am"
SRC_DIR = "src"
TESTS_DIR = "tests"
TEST_PREFIX = "test_"
SUBDIRS = "SUBDIRS"

PathLike: TypeAlias = Path | str
OptionalPathLike: TypeAlias = Optional[PathLike]


def _project_dir(root: OptionalPathLike) -> Path:
    return Path(root) if root is not None else Path.cwd()


def is_automake_project(root: OptionalPathLike = None) -> bool:
    base = _project_dir(root)
    return any((base / marker).is_file() for marker in PROJECT_MARKERS)


def require_project(root: OptionalPathLike = None) -> Path:
    """Return the project directory or raise NotAProjectError."""
    base = _project_dir(root)
    if not is_automake_project(base):
        raise NotAProjectError(str(root) if root is not None else None)
    return base


def _resolve_input(base: Path, path: PathLike) -> Path:
    candidate = Path(path).expanduser()
    if candidate.is_absolute():
        return candidate
    return base / candidate


def _path_is_within(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
        return True
    except ValueError:
        return False


def _make_dir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise BuildFileIOError(f"failed to create {path}: {exc}") from exc


def _copy_file(source: Path, destination: Path) -> None:
    _make_dir(destination.parent)
    try:
        shutil.copy2(source, destination)
    except shutil.SameFileError:
        # Already in place, e.g. `jc add file src/utils.c`.
        return
    except OSError as exc:
        raise BuildFileIOError(
            f"failed to copy '{source}' to '{destination}': {exc}"
        ) from exc


def _register_sources(base: Path, sources: Iterable[Path]) -> None:
    """Add C sources below src/ to src/Makefile.am in one write."""
    src_dir = base / SRC_DIR
    makefile = src_dir / MAKEFILE_AM
    text = read_build_file(makefile)
    updated = text
    for path in sources:
        if not _path_is_within(path, src_dir):
            info(f"{path} is outside {src_dir}; not adding it to {makefile}")
            continue
        relative = path.relative_to(src_dir).as_posix()
        before = updated
        updated = editor.add_source(updated, relative)
        if updated is before:
            info(f"{relative} is already listed in {makefile}")
        else:
            info(f"updated {makefile} to include {relative}")
    if updated is not text:
        write_atomic(makefile, updated)


def op_add_file(
    src_path: PathLike, placement: str = SRC_DIR, root: OptionalPathLike = None
) -> int:
    """Copy a file into `<root>/<placement>/` and register it if it is C."""
    base = require_project(root)
    source = _resolve_input(base, src_path)
    if not source.is_file():
        raise MissingFileError(f"source file '{src_path}' does not exist")
    destination = base / placement / source.name
    _copy_file(source, destination)
    info(f"added file: {source} -> {destination}")
    if is_c_source(destination):
        _register_sources(base, [destination])
    return 0


def op_add_dir(
    src_path: PathLike, placement: str = SRC_DIR, root: OptionalPathLike = None
) -> int:
    """Copy a directory tree into `<root>/<placement>/<name>/`.

    Hidden files and directories are skipped. Every copied `.c` file is
    registered in src/Makefile.am with its path relative to src/.
    """
    base = require_project(root)
    source = _resolve_input(base, src_path)
    if not source.is_dir():
        raise MissingDirectoryError(f"source directory '{src_path}' does not exist")
    source = source.resolve()
    destination = base / placement / source.name
    if _path_is_within(destination.resolve(), source):
        raise InvalidNameError(f"cannot copy '{source}' into itself")

    copied: list[Path] = []
    for current, dirnames, filenames in os.walk(source):
        dirnames[:] = sorted(name for name in dirnames if not name.startswith("."))
        target_dir = destination / Path(current).relative_to(source)
        _make_dir(target_dir)
        for name in sorted(filenames):
            if name.startswith("."):
                continue
            target = target_dir / name
            _copy_file(Path(current) / name, target)
            copied.append(target)

    if copied:
        info(f"added directory: {source} -> {destination} ({len(copied)} files)")
    else:
        info(f"added directory: {source} -> {destination} (empty directory)")
    sources = [path for path in copied if is_c_source(path)]
    if sources:
        _register_sources(base, sources)
    return 0


def op_add_dep(libname: str, root: OptionalPathLike = None) -> int:
    """Link the program against `lib<libname>` through src/Makefile.am."""
    base = require_project(root)
    flag = editor.library_flag(libname)
    makefile = base / SRC_DIR / MAKEFILE_AM
    text = read_build_file(makefile)
    if flag in text.split():
        info(f"dependency '{libname}' is already added")
        return 0
    updated = editor.add_dependency(text, libname)
    if updated is text:
        info(f"dependency '{libname}' is already added")
        return 0
    write_atomic(makefile, updated)
    info(f"added dependency '{libname}' to {makefile}")
    info("run 'jc build' to rebuild the project")
    return 0


def program_for_source(source_path: PathLike) -> str:
    return f"{TEST_PREFIX}{basename_no_ext(str(source_path))}"


def _subdirs_with_tests(base: Path) -> Optional[str]:
    """Return the top-level Makefile.am with `tests` in SUBDIRS, if it changes."""
    makefile = base / MAKEFILE_AM
    if not makefile.exists():
        return None
    text = read_build_file(makefile)
    try:
        updated = editor.add_word(text, SUBDIRS, TESTS_DIR)
    except NoTargetError:
        info(f"no {SUBDIRS} in {makefile}; add '{TESTS_DIR}' to it by hand")
        return None
    return None if updated is text else updated


def op_test_add(source_path: PathLike, root: OptionalPathLike = None) -> int:
    """Create tests/test_<name>.c and register it in tests/Makefile.am."""
    base = require_project(root)
    source = _resolve_input(base, source_path)
    if not source.is_file():
        raise MissingFileError(f"source file '{source_path}' does not exist")
    program = program_for_source(source)
    test_filename = f"{program}.c"
    tests_dir = base / TESTS_DIR
    test_path = tests_dir / test_filename
    if test_path.exists():
        raise AlreadyExistsError(f"test file '{test_path}' already exists")

    makefile = tests_dir / MAKEFILE_AM
    try:
        current: Optional[str] = read_build_file(makefile)
    except MissingFileError:
        current = None
    updated = editor.add_test(current, program, test_filename)
    top_level = _subdirs_with_tests(base) if current is None else None
    suite = to_am_var(program)[len(TEST_PREFIX) :]
    test_source = render_template("test.c", name=suite)

    # The test file is written last; its presence means registration finished.
    _make_dir(tests_dir)
    if updated is current:
        info(f"{program} is already registered in {makefile}")
    else:
        write_atomic(makefile, updated)
        info(f"updated {makefile}")
    if top_level is not None:
        write_atomic(base / MAKEFILE_AM, top_level)
        info(f"added '{TESTS_DIR}' to {SUBDIRS} in {base / MAKEFILE_AM}")
    write_atomic(test_path, test_source)
    info(f"created test file: {test_path}")

    info(f"next: edit {test_path}, then run 'jc test run'")
    return 0


def op_test_remove(source_path: PathLike, root: OptionalPathLike = None) -> int:
    """Drop the test for `source_path` from tests/Makefile.am and delete it."""
    base = require_project(root)
    program = program_for_source(source_path)
    test_path = base / TESTS_DIR / f"{program}.c"
    if not test_path.exists():
        raise MissingFileError(f"test file '{test_path}' does not exist")

    makefile = base / TESTS_DIR / MAKEFILE_AM
    if makefile.exists():
        text = read_build_file(makefile)
        updated = editor.remove_test(text, program)
        if updated is text:
            info(f"{program} is not registered in {makefile}")
        else:
            write_atomic(makefile, updated)
            info(f"updated {makefile}")

    try:
        test_path.unlink()
    except OSError as exc:
        raise BuildFileIOError(f"failed to delete {test_path}: {exc}") from exc
    info(f"removed test file: {test_path}")
    return 0
