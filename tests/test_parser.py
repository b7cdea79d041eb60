from __future__ import annotations

from patchstage.core.normalizer import PatchInputNormalizer
from patchstage.core.parser import UnifiedDiffParser


def test_classic_patch_keeps_raw_header_paths(make_patch) -> None:
    text = make_patch("net/Beta.java", """
        @@ -1,3 +1,3 @@
         one
        -two
        +TWO
         three
    """)

    ps = UnifiedDiffParser().parse_text(text)

    assert ps.dialect == PatchInputNormalizer.DIALECT_CLASSIC
    fp = ps.files[0]
    assert fp.old_path == "../src-base/minecraft/net/Beta.java"
    assert fp.new_path == "../src-work/minecraft/net/Beta.java"
    assert fp.target == fp.old_path
    assert fp.operation == "modify"


def test_hunks_are_numbered_and_keep_literal_lines(make_patch) -> None:
    text = make_patch("net/Beta.java", """
        @@ -1,2 +1,2 @@
        -one
        +ONE
         two
        @@ -9,2 +9,3 @@
         nine
         ten
        +eleven
    """)

    hunks = UnifiedDiffParser().parse_text(text).files[0].hunks

    assert [h.hunk_id for h in hunks] == [1, 2]
    assert hunks[0].raw_lines == ["-one", "+ONE", " two"]
    assert hunks[1].lines == [(" ", "nine"), (" ", "ten"), ("+", "eleven")]
    assert (hunks[1].old_start, hunks[1].old_count, hunks[1].new_count) == (9, 2, 3)


def test_trailing_blank_after_body_is_not_context(make_patch) -> None:
    text = make_patch("net/Beta.java", """
        @@ -1 +1 @@
        -one
        +ONE
    """) + "\n\n"

    hunk = UnifiedDiffParser().parse_text(text).files[0].hunks[0]

    assert hunk.raw_lines == ["-one", "+ONE"]


def test_no_newline_marker_kept_for_rejects_only(make_patch) -> None:
    text = make_patch("net/Beta.java", "@@ -1 +1 @@\n-one\n\\ No newline at end of file\n+ONE\n")

    hunk = UnifiedDiffParser().parse_text(text).files[0].hunks[0]

    assert hunk.lines == [("-", "one"), ("+", "ONE")]
    assert hunk.raw_lines == ["-one", "\\ No newline at end of file", "+ONE"]


def test_body_lines_that_look_like_headers_stay_in_the_hunk(make_patch) -> None:
    text = make_patch("net/Sql.java", """
        @@ -1,3 +1,3 @@
        --- comment
        +++ comment
         two
         three
    """) + make_patch("net/B.java", "@@ -1 +1 @@\n-c\n+d\n")

    ps = UnifiedDiffParser().parse_text(text)

    assert ps.total_files() == 2
    assert ps.files[0].hunks[0].lines == [("-", "-- comment"), ("+", "++ comment"), (" ", "two"), (" ", "three")]
    assert ps.files[1].target == "../src-base/minecraft/net/B.java"


def test_multiple_files_in_one_patch(make_patch) -> None:
    text = make_patch("net/A.java", "@@ -1 +1 @@\n-a\n+b\n") + make_patch("net/B.java", "@@ -1 +1 @@\n-c\n+d\n")

    ps = UnifiedDiffParser().parse_text(text)

    assert [fp.target for fp in ps.files] == [
        "../src-base/minecraft/net/A.java",
        "../src-base/minecraft/net/B.java",
    ]
    assert ps.total_hunks() == 2


def test_git_dialect_with_create_and_crlf() -> None:
    text = (
        "diff --git a/x/y/New.java b/x/y/New.java\r\n"
        "new file mode 100644\r\n"
        "--- /dev/null\r\n"
        "+++ b/x/y/New.java\r\n"
        "@@ -0,0 +1,2 @@\r\n"
        "+alpha\r\n"
        "+beta\r\n"
    )

    ps = UnifiedDiffParser().parse_text(text)

    assert ps.dialect == PatchInputNormalizer.DIALECT_GIT
    fp = ps.files[0]
    assert fp.operation == "create"
    assert fp.target == "b/x/y/New.java"
    assert fp.hunks[0].lines == [("+", "alpha"), ("+", "beta")]


def test_index_dialect_and_binary_marker() -> None:
    text = (
        "Index: a/b/c/Text.java\n"
        "===================================================================\n"
        "--- a/b/c/Text.java\t(old)\n"
        "+++ a/b/c/Text.java\t(new)\n"
        "@@ -1 +1 @@\n"
        "-x\n"
        "+y\n"
        "Index: a/b/c/img.png\n"
        "Binary files a/b/c/img.png and a/b/c/img.png differ\n"
    )

    ps = UnifiedDiffParser().parse_text(text)

    assert ps.dialect == PatchInputNormalizer.DIALECT_INDEX
    assert ps.files[0].target == "a/b/c/Text.java"
    assert ps.files[0].metadata["index_path"] == "a/b/c/Text.java"
    assert ps.files[1].is_binary
    assert ps.files[1].target == "a/b/c/img.png"


def test_text_without_headers_yields_no_files() -> None:
    assert UnifiedDiffParser().parse_text("just some notes\n").total_files() == 0


def test_bom_is_stripped() -> None:
    _, _, blocks = PatchInputNormalizer().normalize("\ufeff--- a/b/c/X.java\n+++ a/b/c/X.java\n@@ -1 +1 @@\n-a\n+b\n")

    assert blocks[0]["lines"][0] == "--- a/b/c/X.java"
