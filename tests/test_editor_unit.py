import pytest

from pyjc import editor
from pyjc.editor import (
    TEST_MAKEFILE_SKELETON,
    add_dependency,
    add_source,
    add_test,
    add_word,
    first_program,
    remove_test,
)
from pyjc.errors import InvalidNameError, NoProgramError, NoTargetError

SKELETON = "if ENABLE_TESTS\n\ncheck_PROGRAMS =\n\nTESTS =\n\nendif\n"
CFLAGS = "-I$(top_srcdir)/src $(CHECK_CFLAGS) -Wall -Wextra -g"


def _with_test_utils() -> str:
    return (
        "if ENABLE_TESTS\n"
        "\n"
        "check_PROGRAMS = test_utils\n"
        "\n"
        "test_utils_SOURCES = test_utils.c\n"
        f"test_utils_CFLAGS = {CFLAGS}\n"
        "test_utils_LDADD = $(CHECK_LIBS)\n"
        "TESTS = test_utils\n"
        "\n"
        "endif\n"
    )


# add_source


def test_add_source_appends_to_sources_line():
    assert add_source("app_SOURCES = main.c\n", "utils.c") == (
        "app_SOURCES = main.c utils.c\n"
    )


def test_add_source_is_idempotent():
    buf = "app_SOURCES = main.c utils.c\n"

    assert add_source(buf, "utils.c") is buf


def test_add_source_checks_every_sources_assignment():
    buf = "a_SOURCES = main.c\nb_SOURCES = utils.c\n"

    assert add_source(buf, "utils.c") is buf


def test_add_source_touches_only_first_assignment():
    buf = "a_SOURCES = x.c\nb_SOURCES = y.c\n"

    assert add_source(buf, "z.c") == "a_SOURCES = x.c z.c\nb_SOURCES = y.c\n"


def test_add_source_does_not_double_existing_trailing_space():
    assert add_source("app_SOURCES = main.c \n", "utils.c") == (
        "app_SOURCES = main.c utils.c\n"
    )


def test_add_source_keeps_comment_after_value():
    assert add_source("app_SOURCES = main.c # core\n", "utils.c") == (
        "app_SOURCES = main.c utils.c # core\n"
    )


def test_add_source_without_trailing_newline():
    assert add_source("app_SOURCES = main.c", "utils.c") == (
        "app_SOURCES = main.c utils.c"
    )


def test_add_source_keeps_crlf_terminators():
    buf = "bin_PROGRAMS = app\r\napp_SOURCES = main.c\r\n"

    assert add_source(buf, "utils.c") == (
        "bin_PROGRAMS = app\r\napp_SOURCES = main.c utils.c\r\n"
    )


def test_add_source_edits_last_continuation_segment():
    buf = "app_SOURCES = main.c \\\n\tutils.c\nEXTRA = 1\n"

    assert add_source(buf, "extra.c") == (
        "app_SOURCES = main.c \\\n\tutils.c extra.c\nEXTRA = 1\n"
    )
    assert add_source(buf, "utils.c") is buf


@pytest.mark.parametrize(
    "buf, expected",
    [
        ("app_SOURCES = main.c \\\n", "app_SOURCES = main.c utils.c \\\n"),
        ("app_SOURCES = main.c\\", "app_SOURCES = main.c utils.c \\"),
        ("app_SOURCES = \\\n", "app_SOURCES = utils.c \\\n"),
    ],
)
def test_add_source_keeps_dangling_backslash_last(buf, expected):
    result = add_source(buf, "utils.c")

    assert result == expected
    assert add_source(result, "utils.c") is result


def test_add_source_does_not_match_substrings():
    assert add_source("app_SOURCES = myutils.c\n", "utils.c") == (
        "app_SOURCES = myutils.c utils.c\n"
    )


def test_add_source_skips_recipe_lines():
    buf = "all-local:\n\tfoo_SOURCES = x.c\napp_SOURCES = main.c\n"

    assert add_source(buf, "utils.c") == (
        "all-local:\n\tfoo_SOURCES = x.c\napp_SOURCES = main.c utils.c\n"
    )


def test_add_source_accepts_relative_path():
    assert add_source("app_SOURCES = main.c\n", "lib/a.c") == (
        "app_SOURCES = main.c lib/a.c\n"
    )


def test_add_source_without_sources_assignment():
    with pytest.raises(NoTargetError):
        add_source("bin_PROGRAMS = app\n", "utils.c")


@pytest.mark.parametrize("filename", ["", "my utils.c", "a\tb.c"])
def test_add_source_rejects_bad_filenames(filename):
    with pytest.raises(InvalidNameError):
        add_source("app_SOURCES = main.c\n", filename)


def test_add_source_token_appears_once():
    buf = "a_SOURCES = main.c\nb_SOURCES = other.c\n"

    result = add_source(add_source(buf, "utils.c"), "utils.c")

    assert result.split().count("utils.c") == 1


# add_dependency


def test_add_dependency_appends_to_ldflags():
    assert add_dependency("bin_PROGRAMS = app\napp_LDFLAGS = -lpthread\n", "m") == (
        "bin_PROGRAMS = app\napp_LDFLAGS = -lpthread -lm\n"
    )


def test_add_dependency_synthesizes_ldflags_line():
    assert add_dependency("bin_PROGRAMS = app\napp_SOURCES = main.c\n", "m") == (
        "bin_PROGRAMS = app\napp_SOURCES = main.c\n\napp_LDFLAGS = -lm\n"
    )


def test_add_dependency_prefers_ldflags_over_ldadd():
    buf = "bin_PROGRAMS = app\napp_LDADD = -lz\napp_LDFLAGS = -lpthread\n"

    assert add_dependency(buf, "m") == (
        "bin_PROGRAMS = app\napp_LDADD = -lz\napp_LDFLAGS = -lpthread -lm\n"
    )


def test_add_dependency_falls_back_to_ldadd():
    assert add_dependency("app_LDADD = $(CHECK_LIBS)\n", "m") == (
        "app_LDADD = $(CHECK_LIBS) -lm\n"
    )


def test_add_dependency_already_present_in_ldadd():
    buf = "bin_PROGRAMS = app\napp_LDADD = -lm\napp_LDFLAGS = -lpthread\n"

    assert add_dependency(buf, "m") is buf


def test_add_dependency_does_not_match_longer_library():
    assert add_dependency("bin_PROGRAMS = app\napp_LDFLAGS = -lmath\n", "m") == (
        "bin_PROGRAMS = app\napp_LDFLAGS = -lmath -lm\n"
    )


def test_add_dependency_normalizes_program_prefix():
    assert add_dependency("bin_PROGRAMS = my-app\n", "m") == (
        "bin_PROGRAMS = my-app\n\nmy_app_LDFLAGS = -lm\n"
    )


def test_add_dependency_reuses_trailing_blank_line():
    assert add_dependency("bin_PROGRAMS = app\n\n", "m") == (
        "bin_PROGRAMS = app\n\napp_LDFLAGS = -lm\n"
    )


def test_add_dependency_terminates_last_line_before_appending():
    assert add_dependency("bin_PROGRAMS = app", "m") == (
        "bin_PROGRAMS = app\n\napp_LDFLAGS = -lm\n"
    )


def test_add_dependency_keeps_missing_final_newline_when_editing():
    assert add_dependency("bin_PROGRAMS = app\napp_LDFLAGS = -lz", "m") == (
        "bin_PROGRAMS = app\napp_LDFLAGS = -lz -lm"
    )


@pytest.mark.parametrize("buf", ["app_SOURCES = main.c\n", "bin_PROGRAMS =\n"])
def test_add_dependency_without_program(buf):
    with pytest.raises(NoProgramError):
        add_dependency(buf, "m")


@pytest.mark.parametrize("libname", ["", "bad name", "a;b", "x/y"])
def test_add_dependency_rejects_bad_library_names(libname):
    with pytest.raises(InvalidNameError):
        add_dependency("bin_PROGRAMS = app\n", libname)


def test_library_flag_accepts_dotted_names():
    assert editor.library_flag("gtk-3.0") == "-lgtk-3.0"
    assert editor.library_flag("stdc++") == "-lstdc++"


# add_test


def test_add_test_on_skeleton():
    result = add_test(SKELETON, "test_utils", "test_utils.c")

    assert result == _with_test_utils()
    assert "check_PROGRAMS = test_utils\n" in result
    assert "TESTS = test_utils\n" in result


def test_add_test_bootstraps_missing_file():
    result = add_test(None, "test_utils", "test_utils.c")

    assert result.startswith("if ENABLE_TESTS\n")
    assert result.endswith("endif\n")
    assert "# Check framework based tests\ncheck_PROGRAMS = test_utils\n\n" in result
    assert (
        "test_utils_SOURCES = test_utils.c\n"
        f"test_utils_CFLAGS = {CFLAGS}\n"
        "test_utils_LDADD = $(CHECK_LIBS)\n"
        "TESTS = test_utils\n"
    ) in result


def test_add_test_is_idempotent():
    buf = _with_test_utils()

    assert add_test(buf, "test_utils", "test_utils.c") is buf


def test_add_test_second_program():
    result = add_test(_with_test_utils(), "test_math", "test_math.c")

    assert "check_PROGRAMS = test_utils test_math\n" in result
    assert "TESTS = test_utils test_math\n" in result
    assert result.count("_SOURCES = ") == 2
    assert result.index("test_math_SOURCES") < result.index("test_utils_SOURCES")


def test_add_test_without_conditional_or_blank_line():
    result = add_test("check_PROGRAMS =\nTESTS =\n", "test_a", "test_a.c")

    assert result == (
        "check_PROGRAMS = test_a\n"
        "test_a_SOURCES = test_a.c\n"
        f"test_a_CFLAGS = {CFLAGS}\n"
        "test_a_LDADD = $(CHECK_LIBS)\n"
        "TESTS = test_a\n"
    )


def test_add_test_ignores_unrelated_conditional():
    buf = "if ENABLE_DOCS\nDOCS = a\nendif\n\ncheck_PROGRAMS =\n\nTESTS =\n"

    result = add_test(buf, "test_a", "test_a.c")

    assert result.startswith(
        "if ENABLE_DOCS\nDOCS = a\nendif\n\ncheck_PROGRAMS = test_a\n\n"
    )
    assert result.endswith("TESTS = test_a\n")


def test_add_test_normalizes_variable_prefix():
    result = add_test(SKELETON, "test_my-lib", "test_my-lib.c")

    assert "check_PROGRAMS = test_my-lib\n" in result
    assert "test_my_lib_SOURCES = test_my-lib.c\n" in result


def test_add_test_requires_tests_variable():
    with pytest.raises(NoTargetError, match="TESTS"):
        add_test("check_PROGRAMS =\n", "test_a", "test_a.c")


def test_add_test_requires_check_programs():
    with pytest.raises(NoTargetError, match="check_PROGRAMS"):
        add_test("TESTS =\n", "test_a", "test_a.c")


def test_add_test_skeleton_constant_matches_bootstrap():
    assert add_test(None, "test_a", "test_a.c") == add_test(
        TEST_MAKEFILE_SKELETON, "test_a", "test_a.c"
    )


# remove_test


def test_remove_test_restores_skeleton():
    assert remove_test(_with_test_utils(), "test_utils") == SKELETON


def test_remove_test_when_absent():
    assert remove_test(SKELETON, "test_utils") is SKELETON


@pytest.mark.parametrize(
    "buf",
    [
        SKELETON,
        TEST_MAKEFILE_SKELETON,
        "check_PROGRAMS =\nTESTS =\n",
        "# tests\nif ENABLE_TESTS\n\ncheck_PROGRAMS = test_a\n\n"
        "test_a_SOURCES = test_a.c\n\nTESTS = test_a\n\nendif\n\nEXTRA_DIST = x\n",
    ],
)
def test_remove_test_inverts_add_test(buf):
    assert remove_test(add_test(buf, "test_new", "test_new.c"), "test_new") == buf


def test_remove_test_keeps_other_programs():
    buf = add_test(_with_test_utils(), "test_math", "test_math.c")

    result = remove_test(buf, "test_utils")

    assert "check_PROGRAMS = test_math\n" in result
    assert "TESTS = test_math\n" in result
    assert "test_utils" not in result
    assert "test_math_SOURCES = test_math.c\n" in result


def test_remove_test_does_not_touch_programs_sharing_a_prefix():
    buf = (
        "check_PROGRAMS = test_a test_a2\n"
        "test_a_SOURCES = test_a.c\n"
        "test_a_LDFLAGS = -lm\n"
        "test_a2_SOURCES = test_a2.c\n"
        "TESTS = test_a test_a2\n"
    )

    assert remove_test(buf, "test_a") == (
        "check_PROGRAMS = test_a2\n"
        "test_a2_SOURCES = test_a2.c\n"
        "TESTS = test_a2\n"
    )


def test_remove_test_removes_word_from_middle():
    buf = "check_PROGRAMS = a b c\nTESTS = a b c\n"

    assert remove_test(buf, "b") == "check_PROGRAMS = a c\nTESTS = a c\n"


def test_remove_test_inside_continuation():
    buf = "check_PROGRAMS = test_a \\\n\ttest_b\nTESTS = test_a test_b\n"

    assert remove_test(buf, "test_b") == "check_PROGRAMS = test_a\nTESTS = test_a\n"


def test_remove_test_deletes_continued_block_lines():
    buf = (
        "check_PROGRAMS = test_a\n"
        "\n"
        "test_a_SOURCES = test_a.c \\\n"
        "\thelpers.c\n"
        "\n"
        "TESTS = test_a\n"
    )

    assert remove_test(buf, "test_a") == "check_PROGRAMS =\n\nTESTS =\n"


def test_remove_test_keeps_blank_line_after_non_blank_predecessor():
    buf = "check_PROGRAMS = test_a\ntest_a_SOURCES = test_a.c\n\nTESTS = test_a\n"

    assert remove_test(buf, "test_a") == "check_PROGRAMS =\n\nTESTS =\n"


def test_remove_test_keeps_missing_final_newline():
    buf = "check_PROGRAMS = test_a\nTESTS = test_a"

    assert remove_test(buf, "test_a") == "check_PROGRAMS =\nTESTS ="


def test_remove_test_keeps_comments():
    buf = "check_PROGRAMS = test_a test_b # all tests\n"

    assert remove_test(buf, "test_a") == "check_PROGRAMS = test_b # all tests\n"


# shared properties


@pytest.mark.parametrize(
    "edit",
    [
        lambda buf: add_source(buf, "utils.c"),
        lambda buf: add_dependency(buf, "m"),
        lambda buf: add_test(buf, "test_x", "test_x.c"),
        lambda buf: add_word(buf, "SUBDIRS", "tests"),
    ],
)
def test_add_edits_are_idempotent(edit):
    buf = (
        "SUBDIRS = src\n"
        "bin_PROGRAMS = app\n"
        "app_SOURCES = main.c\n"
        "\n"
        "check_PROGRAMS =\n"
        "\n"
        "TESTS =\n"
    )

    once = edit(buf)

    assert edit(once) == once


def test_untouched_lines_are_preserved():
    buf = (
        "# Programs to build\n"
        "bin_PROGRAMS = app\n"
        "\n"
        "app_SOURCES = main.c\n"
        "app_CFLAGS = -Wall   -g\n"
        "all-local:\n"
        "\t@echo done\n"
    )

    original = buf.splitlines()

    edited = add_source(buf, "utils.c").splitlines()
    appended = add_dependency(buf, "m").splitlines()

    assert len(edited) == len(original)
    assert [i for i, (a, b) in enumerate(zip(original, edited)) if a != b] == [3]
    assert appended[: len(original)] == original
    assert appended[len(original) :] == ["", "app_LDFLAGS = -lm"]


# add_word / first_program


def test_add_word_to_subdirs():
    assert add_word("SUBDIRS = src\n", "SUBDIRS", "tests") == "SUBDIRS = src tests\n"


def test_add_word_already_present():
    buf = "SUBDIRS = src tests\n"

    assert add_word(buf, "SUBDIRS", "tests") is buf


def test_add_word_missing_variable():
    with pytest.raises(NoTargetError, match="SUBDIRS"):
        add_word("EXTRA_DIST = README\n", "SUBDIRS", "tests")


def test_first_program():
    assert first_program("# c\nbin_PROGRAMS = app other\n") == "app"
    assert first_program("bin_PROGRAMS =\n") is None
    assert first_program("app_SOURCES = main.c\n") is None
