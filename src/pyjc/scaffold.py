"""Project templates and the `jc new` scaffolder.

Templates use `string.Template` placeholders (`${project}`, `${am_name}`,
`${name}`); make and shell `$(...)`/`$var` references pass through
untouched. An on-disk copy found through `config.find_template` replaces
the built-in text of the same name.
"""

import os
from pathlib import Path
from string import Template

from pyjc import config
from pyjc.amfile import write_atomic
from pyjc.console import info
from pyjc.editor import TEST_MAKEFILE_SKELETON
from pyjc.errors import AlreadyExistsError, BuildFileIOError, InvalidNameError
from pyjc.names import to_am_var

EXECUTABLE_MODE = 0o755

CONFIGURE_AC = """\
AC_PREREQ([2.69])
AC_INIT([${project}], [1.0.0], [support@example.com])
AM_INIT_AUTOMAKE([-Wall -Werror foreign subdir-objects])
AC_CONFIG_SRCDIR([src/main.c])
AC_CONFIG_HEADERS([config.h])
AC_CONFIG_MACRO_DIRS([m4])

# Checks for programs
AC_PROG_CC

# Check for Check testing framework (optional for testing)
AC_ARG_ENABLE([tests],
    AS_HELP_STRING([--enable-tests], [Enable building tests with Check framework]),
    [enable_tests=$enableval],
    [enable_tests=no])

if test "x$enable_tests" = "xyes"; then
    PKG_CHECK_MODULES([CHECK], [check >= 0.9.4])
fi

AM_CONDITIONAL([ENABLE_TESTS], [test "x$enable_tests" = "xyes"])

# Checks for header files
AC_CHECK_HEADERS([stdlib.h string.h])

# Checks for typedefs, structures, and compiler characteristics
AC_TYPE_SIZE_T

# Checks for library functions
AC_FUNC_MALLOC

AC_CONFIG_FILES([
    Makefile
    src/Makefile
    tests/Makefile
])

AC_OUTPUT
"""

TOP_MAKEFILE_AM = """\
SUBDIRS = src tests

ACLOCAL_AMFLAGS = -I m4

EXTRA_DIST = README.md autogen.sh
"""

SRC_MAKEFILE_AM = """\
# Programs to build
bin_PROGRAMS = ${am_name}

# Source files
${am_name}_SOURCES = main.c

# Compiler flags
${am_name}_CFLAGS = -Wall -Wextra -std=c11 -g -I$(srcdir)/include
"""

MAIN_C = """\
#include <stdio.h>
#include <stdlib.h>
#include "project.h"

void print_version(void) {
    printf("Version: %s\\n", PROJECT_VERSION);
}

int main(int argc, char *argv[]) {
    (void)argc;
    (void)argv;
    printf("Hello from ${project}!\\n");
    print_version();
    return 0;
}
"""

PROJECT_H = """\
#ifndef PROJECT_H
#define PROJECT_H

#include <stdio.h>

/* Project version */
#define PROJECT_VERSION "1.0.0"

/* Function declarations */
void print_version(void);

#endif /* PROJECT_H */
"""

README_MD = """\
# ${project}

A C project created with jc.

## Building

```bash
jc build
```

## Running

```bash
jc run
```

## Testing

```bash
jc test add src/main.c
jc test run
```

## Installing

```bash
jc install
```
"""

AUTOGEN_SH = """\
#!/bin/sh
autoreconf --install
"""

GITIGNORE = """\
# Automake/Autoconf
Makefile
Makefile.in
aclocal.m4
autom4te.cache/
compile
config.h
config.h.in
config.log
config.status
configure
depcomp
install-sh
missing
test-driver
stamp-h1
.deps/
.dirstamp
*.log
*.trs

# Build artifacts
*.o
*.a
*.so
*.dylib
src/${am_name}
tests/test_*
!tests/test_*.c

# Debug
*.dSYM/
core
vgcore.*
"""

TEST_C = """\
#include <check.h>
#include <stdio.h>
#include <stdlib.h>

/* Example test case for ${name} */
START_TEST(test_example) {
    ck_assert_int_eq(1, 1);
}
END_TEST

Suite *${name}_suite(void) {
    Suite *s;
    TCase *tc_core;

    s = suite_create("${name}");

    tc_core = tcase_create("Core");
    tcase_add_test(tc_core, test_example);
    suite_add_tcase(s, tc_core);

    return s;
}

int main(void) {
    int number_failed;
    Suite *s;
    SRunner *sr;

    s = ${name}_suite();
    sr = srunner_create(s);

    srunner_run_all(sr, CK_NORMAL);
    number_failed = srunner_ntests_failed(sr);
    srunner_free(sr);

    return (number_failed == 0) ? EXIT_SUCCESS : EXIT_FAILURE;
}
"""

BUILTIN_TEMPLATES = {
    "configure.ac": CONFIGURE_AC,
    "Makefile.am": TOP_MAKEFILE_AM,
    "src_Makefile.am": SRC_MAKEFILE_AM,
    "tests_Makefile.am": TEST_MAKEFILE_SKELETON,
    "main.c": MAIN_C,
    "project.h": PROJECT_H,
    "README.md": README_MD,
    "autogen.sh": AUTOGEN_SH,
    "gitignore": GITIGNORE,
    "test.c": TEST_C,
}

# (template name, path inside the project)
PROJECT_LAYOUT = (
    ("configure.ac", "configure.ac"),
    ("Makefile.am", "Makefile.am"),
    ("src_Makefile.am", "src/Makefile.am"),
    ("main.c", "src/main.c"),
    ("project.h", "src/include/project.h"),
    ("tests_Makefile.am", "tests/Makefile.am"),
    ("README.md", "README.md"),
    ("autogen.sh", "autogen.sh"),
    ("gitignore", ".gitignore"),
)


def render_template(template: str, /, **values: str) -> str:
    path = config.find_template(template)
    if path is None:
        source = BUILTIN_TEMPLATES[template]
    else:
        try:
            source = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise BuildFileIOError(f"failed to read template {path}: {exc}") from exc
    return Template(source).safe_substitute(values)


def create_project(name: str, parent: Path) -> Path:
    """Create and populate `<parent>/<name>`; return the project directory."""
    name = name.strip()
    if not name or "/" in name or name in {".", ".."}:
        raise InvalidNameError(f"invalid project name {name!r}")
    am_name = to_am_var(name)
    root = parent / name
    if root.exists():
        raise AlreadyExistsError(f"directory '{root}' already exists")

    info(f"creating new project: {name}")
    try:
        for directory in ("src/include", "tests", "m4"):
            (root / directory).mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise BuildFileIOError(f"failed to create {root}: {exc}") from exc

    for template, relative in PROJECT_LAYOUT:
        target = root / relative
        write_atomic(target, render_template(template, project=name, am_name=am_name))
        info(f"created {target}")

    try:
        os.chmod(root / "autogen.sh", EXECUTABLE_MODE)
    except OSError as exc:
        raise BuildFileIOError(f"failed to make autogen.sh executable: {exc}") from exc
    return root
