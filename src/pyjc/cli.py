#!/usr/bin/env python3
"""Command line front end for autotools based C projects."""

import importlib.metadata
import os
import shutil
import sys
from pathlib import Path
from typing import Optional, Sequence

from pyjc import config, project
from pyjc.amfile import read_build_file
from pyjc.console import error, info, run_cmd, run_quiet
from pyjc.editor import first_program
from pyjc.errors import BuildFileIOError, ExternalToolError, JcError
from pyjc.scaffold import create_project

DEFAULT_VERSION = "0.1.0"
PROGRAM_SEARCH_DIRS = ("src", ".")
CLEAN_BINARY_DIRS = ("src", "tests")
CORE_FILE_NAME = "core"
SEPARATOR = "-" * 40
SEGFAULT_CODES = (-11, 139)
ABORT_CODES = (-6, 134)
SCRIPT_MAGIC = b"#!"
OBJECT_SUFFIX = ".o"
GENERATED_DIRS = ("autom4te.cache",)
GENERATED_FILES = (
    "config.log",
    "config.status",
    "config.h",
    "stamp-h1",
    "libtool",
    "Makefile",
    "src/Makefile",
    "tests/Makefile",
)
TOP_LEVEL_SUFFIXES = (".la", ".lo", "~")


def is_macos() -> bool:
    return sys.platform == "darwin"


def _resolve_path(path: Path) -> Path:
    try:
        return path.resolve()
    except OSError:
        return path.absolute()


def _path_is_within(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
        return True
    except ValueError:
        return False


def _require_tool(returncode: int, tool: str) -> None:
    if returncode != 0:
        raise ExternalToolError(tool, returncode)


# Autotools backend.
def ensure_configured(root: Path) -> None:
    """Generate `configure` and run it when their outputs are missing."""
    if not (root / "configure").exists():
        if (root / "autogen.sh").exists():
            info("running autogen.sh to generate the configure script")
            _require_tool(run_cmd(["./autogen.sh"], cwd=root), "autogen.sh")
        else:
            info("running autoreconf to generate the configure script")
            _require_tool(
                run_cmd(["autoreconf", "--install"], cwd=root), "autoreconf"
            )
    if not (root / "Makefile").exists():
        info("running configure")
        configure_args = config.config_manager.configure_args
        _require_tool(
            run_cmd(["./configure", *configure_args], cwd=root), "configure"
        )


def build_project(root: Path) -> int:
    ensure_configured(root)
    info("running make")
    make = config.make_program()
    _require_tool(run_cmd([make, *config.config_manager.make_args], cwd=root), make)
    info("build completed successfully")
    return 0


def ensure_built(root: Path) -> None:
    if not (root / "Makefile").exists():
        info("project not built yet; building first")
        build_project(root)


def _is_executable_file(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def _is_script(path: Path) -> bool:
    try:
        with path.open("rb") as handle:
            return handle.read(len(SCRIPT_MAGIC)) == SCRIPT_MAGIC
    except OSError:
        return False


def _is_compiled_binary(path: Path) -> bool:
    return _is_executable_file(path) and not _is_script(path)


def _program_name(root: Path) -> Optional[str]:
    makefile = root / "src" / "Makefile.am"
    if not makefile.exists():
        return None
    return first_program(read_build_file(makefile))


def find_program(root: Path) -> Optional[Path]:
    """Locate the built program: the bin_PROGRAMS entry, else any binary."""
    name = _program_name(root)
    if name:
        for directory in PROGRAM_SEARCH_DIRS:
            candidate = root / directory / name
            if _is_executable_file(candidate):
                return candidate
    for directory in PROGRAM_SEARCH_DIRS:
        search_dir = root / directory
        if not search_dir.is_dir():
            continue
        for entry in sorted(search_dir.iterdir()):
            if entry.name.startswith("."):
                continue
            if _is_compiled_binary(entry):
                return entry
    return None


def _missing_program_message(root: Path) -> str:
    search = ", ".join(str(root / directory) for directory in PROGRAM_SEARCH_DIRS)
    return (
        f"could not find an executable to run (searched: {search}); "
        "make sure the project builds"
    )


def run_program(root: Path, args: Sequence[str]) -> int:
    """Run the project's program with `args` and report crashes."""
    ensure_built(root)
    program = find_program(root)
    if program is None:
        error(_missing_program_message(root))
        return 1
    info(f"running {program}")
    print(SEPARATOR)
    result = run_cmd([str(program), *args], cwd=root)
    print(SEPARATOR)
    if result == 0:
        return 0
    info(f"program exited with code {result}")
    if result in SEGFAULT_CODES:
        info("segmentation fault detected; run 'jc bt' to debug it")
    elif result in ABORT_CODES:
        info("abort signal detected; run 'jc bt' to debug it")
    return 1


def install_project(root: Path) -> int:
    ensure_built(root)
    info("installing project")
    if run_cmd([config.make_program(), "install"], cwd=root) != 0:
        error("installation failed")
        info("you may need to run with sudo: sudo jc install")
        return 1
    info("installation completed successfully")
    return 0


def default_debugger() -> str:
    configured = config.config_manager.debugger
    if configured:
        return configured
    return "lldb" if is_macos() else "gdb"


def _is_lldb(debugger: str) -> bool:
    return Path(debugger).name.startswith("lldb")


def _debugger_command(
    debugger: str, program: Path, core: Optional[Path], args: Sequence[str]
) -> list[str]:
    if _is_lldb(debugger):
        if core is not None:
            return [debugger, str(program), "-c", str(core)]
        return [debugger, "-o", "run", "-o", "bt", "--", str(program), *args]
    if core is not None:
        return [debugger, str(program), str(core)]
    return [debugger, "-ex", "run", "-ex", "bt", "--args", str(program), *args]


def _print_debugger_usage(debugger: str, program: Path) -> None:
    prompt = f"({Path(debugger).name})"
    print("")
    print(f"to debug with {debugger}:")
    print(f"  {debugger} {program}")
    print(f"  {prompt} run")
    print(f"  {prompt} bt")
    print(f"  {prompt} quit")
    if _is_lldb(debugger):
        print(f"or run directly with a backtrace: {debugger} -o run -o bt {program}")
    else:
        print(f"or run directly with a backtrace: {debugger} -ex run -ex bt {program}")


def backtrace(root: Path, args: Sequence[str]) -> int:
    """Run the program under the debugger, or load `core` when it exists."""
    ensure_built(root)
    program = find_program(root)
    if program is None:
        error(_missing_program_message(root))
        return 1
    debugger = default_debugger()
    if shutil.which(debugger) is None:
        error(f"debugger '{debugger}' not found; install it or set JC_DEBUGGER")
        return 1

    core_path = root / CORE_FILE_NAME
    core = core_path if core_path.is_file() else None
    if core is not None:
        info(f"core dump found: {core}; run 'bt' in {debugger} to see the backtrace")
    info(f"using {debugger} on {program}")
    print(SEPARATOR)
    result = run_cmd(_debugger_command(debugger, program, core, args), cwd=root)
    if result != 0:
        if core is None:
            _print_debugger_usage(debugger, program)
        return 1
    return 0


def _is_dangerous_delete_target(path: Path, root: Path) -> bool:
    resolved = _resolve_path(path)
    resolved_root = _resolve_path(root)
    if resolved == Path(resolved.anchor):
        return True
    if resolved == _resolve_path(Path.home()):
        return True
    if resolved == resolved_root:
        return True
    return not _path_is_within(resolved, resolved_root)


def _remove(path: Path, root: Path) -> int:
    if _is_dangerous_delete_target(path, root):
        error(f"refusing to remove {path}: it is outside the project root")
        return 1
    info(f"removing {path}")
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except OSError as exc:
        raise BuildFileIOError(f"failed to remove {path}: {exc}") from exc
    return 0


def _clean_candidates(root: Path) -> list[Path]:
    candidates = [root / name for name in GENERATED_DIRS]
    for directory in CLEAN_BINARY_DIRS:
        search_dir = root / directory
        if not search_dir.is_dir():
            continue
        for entry in sorted(search_dir.iterdir()):
            if entry.name.startswith(".") or not entry.is_file():
                continue
            if entry.name.endswith(OBJECT_SUFFIX) or _is_compiled_binary(entry):
                candidates.append(entry)
    candidates.extend(root / name for name in GENERATED_FILES)
    for entry in sorted(root.iterdir()):
        if entry.is_file() and entry.name.endswith(TOP_LEVEL_SUFFIXES):
            candidates.append(entry)
    return candidates


def clean_project(root: Path) -> int:
    """Remove autotools output and build artifacts from the project tree."""
    if (root / "Makefile").exists():
        make = config.make_program()
        info("running make clean")
        run_quiet([make, "clean"], cwd=root)
        info("running make distclean")
        run_quiet([make, "distclean"], cwd=root)

    removed = 0
    for path in _clean_candidates(root):
        if not path.exists() and not path.is_symlink():
            continue
        result = _remove(path, root)
        if result != 0:
            return result
        removed += 1
    if removed:
        info("clean completed successfully")
    else:
        info(f"nothing to clean in {root}")
    return 0


def binary_for_test_name(name: str) -> str:
    """Map `test_x`, `test_x.c` or `x` to the check program `test_x`."""
    base = os.path.basename(name.rstrip("/"))
    if base.endswith(".c"):
        base = base[: -len(".c")]
    if base.startswith(project.TEST_PREFIX):
        return base
    return f"{project.TEST_PREFIX}{base}"


def run_tests(root: Path, name: Optional[str]) -> int:
    tests_dir = root / project.TESTS_DIR
    if not tests_dir.is_dir():
        error("no tests directory found; use 'jc test add <file>' to create tests")
        return 1
    if name is None:
        info("running all tests")
        result = run_cmd([config.make_program(), "check"], cwd=root)
        return 0 if result == 0 else 1
    test_path = tests_dir / binary_for_test_name(name)
    if not _is_executable_file(test_path):
        error(f"test '{test_path}' not found; run 'make check' first to build tests")
        return 1
    info(f"running test {test_path}")
    result = run_cmd([str(test_path)], cwd=root)
    return 0 if result == 0 else 1


def new_project(name: str) -> int:
    config.apply_env_overrides()
    root = create_project(name, Path.cwd())
    info(f"project '{name}' created successfully")
    print("")
    print("next steps:")
    print(f"  cd {root.name}")
    print("  jc build")
    print("  jc run")
    return 0


def usage() -> None:
    print("usage: jc <command> [args...]")
    print("")
    print("commands:")
    print("  new <name>            create a new automake project")
    print("  add file <path>       copy a file into src/ and register C sources")
    print("  add dir <path>        copy a directory into src/ and register C sources")
    print("  add dep <library>     link the program against a library")
    print("  build (b)             generate, configure and build the project")
    print("  run (r) [args...]     build (if needed) and run the program")
    print("  install               run make install")
    print("  clean (cl)            remove build artifacts")
    print("  bt [args...]          run the program under a debugger and show a backtrace")
    print("  test add <path>       create a Check test for a source file")
    print("  test remove <path>    delete the test for a source file")
    print("  test run [name]       run one test or the whole suite")
    print("  help (h)              show this help text")
    print("  version (-v)          show version information")
    print("")
    print("environment:")
    print("  JC_DATA_DIR           directory searched first for templates/<name>")
    print("  JC_DEBUGGER           debugger used by 'jc bt'")
    print("  JC_CONFIGURE_ARGS     extra arguments passed to ./configure")
    print(f"  JC_CONFIG_FILE        config file to use instead of {config.DEFAULT_CONFIG_FILE_NAME}")
    print("")
    print("examples:")
    print("  jc new hello")
    print("  jc add file ../utils.c")
    print("  jc add dep m")
    print("  jc run -- --verbose")
    print("  jc test add src/utils.c")
    print("  jc test run utils")


def _add_command(args: Sequence[str], root: Path) -> int:
    if len(args) != 2:
        error("usage: jc add <file|dir|dep> <target>")
        return 1
    kind, target = args
    if kind == "file":
        return project.op_add_file(target, root=root)
    if kind == "dir":
        return project.op_add_dir(target, root=root)
    if kind == "dep":
        return project.op_add_dep(target, root=root)
    error(f"unknown add type '{kind}'")
    error("usage: jc add <file|dir|dep> <target>")
    return 1


def _test_command(args: Sequence[str], root: Path) -> int:
    if not args:
        error("usage: jc test <add|remove|run> [path]")
        return 1
    subcommand, rest = args[0], args[1:]
    if subcommand in {"add", "remove"}:
        if len(rest) != 1:
            error(f"usage: jc test {subcommand} <source file>")
            return 1
        if subcommand == "add":
            return project.op_test_add(rest[0], root=root)
        return project.op_test_remove(rest[0], root=root)
    if subcommand == "run":
        if len(rest) > 1:
            error("usage: jc test run [name]")
            return 1
        return run_tests(root, rest[0] if rest else None)
    error(f"unknown test subcommand '{subcommand}'")
    error("usage: jc test <add|remove|run> [path]")
    return 1


def _passthrough(args: Sequence[str]) -> list[str]:
    args = list(args)
    if args and args[0] == "--":
        return args[1:]
    return args


def main() -> int:
    if len(sys.argv) < 2:
        error("no command given")
        usage()
        return 1

    command = sys.argv[1]
    if command in {"version", "-v", "--version"}:
        try:
            version = importlib.metadata.version("pyjc")
        except importlib.metadata.PackageNotFoundError:
            version = DEFAULT_VERSION
        print(f"jc {version}")
        return 0
    args = sys.argv[2:]

    aliases = {
        "b": "build",
        "r": "run",
        "cl": "clean",
        "t": "test",
        "h": "help",
    }
    command = aliases.get(command, command)
    if command in {"help", "-h", "--help"}:
        usage()
        return 0

    known = {"new", "add", "build", "run", "install", "clean", "bt", "test"}
    if command not in known:
        error(f"unknown command '{command}'")
        usage()
        return 1

    try:
        if command == "new":
            if len(args) != 1 or not args[0].strip():
                error("usage: jc new <name>")
                return 1
            return new_project(args[0])

        root = project.require_project(Path.cwd())
        result = config.load_config(root)
        if result != 0:
            return result

        if command == "add":
            return _add_command(args, root)
        if command == "test":
            return _test_command(args, root)
        if command in {"build", "install", "clean"} and args:
            error(f"usage: jc {command}")
            return 1
        if command == "build":
            return build_project(root)
        if command == "run":
            return run_program(root, _passthrough(args))
        if command == "install":
            return install_project(root)
        if command == "clean":
            return clean_project(root)
        return backtrace(root, _passthrough(args))
    except JcError as exc:
        error(str(exc))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
