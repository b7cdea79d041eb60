from __future__ import annotations

import pytest

from patchstage.core.context import ContextAccessor
from patchstage.core.engine import ContextualPatchEngine
from patchstage.core.errors import HunkFailure, PatchFailure, PatchTargetNotFound
from patchstage.core.models import PatchStatus
from patchstage.core.tree import SourceTree


def _apply(tree, text, max_fuzz=0, dry_run=False, engine=None):
    engine = engine or ContextualPatchEngine()
    return engine.apply(text, ContextAccessor(tree), max_fuzz, dry_run=dry_run)


def test_exact_match_succeeds(tree, make_patch) -> None:
    text = make_patch("net/Beta.java", """
        @@ -2,3 +2,3 @@
         two
        -three
        +THREE
         four
    """)

    [report] = _apply(tree, text)

    assert report.status is PatchStatus.SUCCESS
    assert report.failure is None
    assert report.hunks[0].index == 1
    assert report.hunks[0].offset == 0
    assert tree.text["net/Beta.java"].split("\n")[:4] == ["one", "two", "THREE", "four"]


def test_offset_match_is_still_success(tree, make_patch) -> None:
    text = make_patch("net/Beta.java", """
        @@ -5,3 +5,3 @@
         two
        -three
        +THREE
         four
    """)

    [report] = _apply(tree, text)

    assert report.status is PatchStatus.SUCCESS
    assert report.hunks[0].offset == -3
    assert "THREE" in tree.text["net/Beta.java"]


def test_equally_close_matches_pick_the_earlier_line(make_patch) -> None:
    tree = SourceTree(text={"net/X.java": "x\ny\nx"})
    text = make_patch("net/X.java", """
        @@ -2,1 +2,1 @@
        -x
        +X
    """)

    _apply(tree, text)

    assert tree.text["net/X.java"] == "X\ny\nx"


def test_context_mismatch_fails_without_fuzz(tree, make_patch) -> None:
    text = make_patch("net/Beta.java", """
        @@ -2,3 +2,3 @@
         two
        -three
        +THREE
         FOUR
    """)
    before = tree.text["net/Beta.java"]

    [report] = _apply(tree, text, max_fuzz=0)

    assert report.status is PatchStatus.FAILED
    assert isinstance(report.failure, PatchFailure)
    assert isinstance(report.hunks[0].failure, HunkFailure)
    assert report.hunks[0].fuzz is None
    assert tree.text["net/Beta.java"] == before


def test_context_mismatch_within_fuzz_is_fuzzed(tree, make_patch) -> None:
    text = make_patch("net/Beta.java", """
        @@ -2,3 +2,3 @@
         two
        -three
        +THREE
         FOUR
    """)

    [report] = _apply(tree, text, max_fuzz=1)

    assert report.status is PatchStatus.FUZZED
    assert report.failure is None
    hunk = report.hunks[0]
    assert hunk.fuzz == 1
    assert hunk.index == 2
    assert tree.text["net/Beta.java"].split("\n")[2:4] == ["THREE", "four"]


def test_fuzz_beyond_available_context_does_not_help(tree, make_patch) -> None:
    text = make_patch("net/Beta.java", """
        @@ -3,1 +3,1 @@
        -THREE
        +3
    """)

    [report] = _apply(tree, text, max_fuzz=3)

    assert report.status is PatchStatus.FAILED


def test_one_failed_hunk_does_not_block_the_others(tree, make_patch) -> None:
    text = make_patch("net/Beta.java", """
        @@ -1,2 +1,2 @@
        -one
        +ONE
         two
        @@ -4,2 +4,2 @@
         four
        -FIVE
        +5
        @@ -9,2 +9,3 @@
         nine
         ten
        +eleven
    """)

    [report] = _apply(tree, text)

    assert report.status is PatchStatus.FAILED
    assert [h.status for h in report.hunks] == [PatchStatus.SUCCESS, PatchStatus.FAILED, PatchStatus.SUCCESS]
    assert [h.hunk_id for h in report.failed_hunks()] == [2]
    assert "1 of 3 hunks failed" in str(report.failure)
    assert tree.text["net/Beta.java"] == "ONE\ntwo\nthree\nfour\nfive\nsix\nseven\neight\nnine\nten\neleven"


def test_missing_target_fails_every_hunk(tree, make_patch) -> None:
    text = make_patch("net/Missing.java", """
        @@ -1,1 +1,1 @@
        -a
        +b
        @@ -5,1 +5,1 @@
        -c
        +d
    """)

    [report] = _apply(tree, text)

    assert report.status is PatchStatus.FAILED
    assert isinstance(report.failure, PatchTargetNotFound)
    assert len(report.failed_hunks()) == 2
    assert "net/Missing.java" not in tree


def test_create_from_dev_null(make_patch) -> None:
    tree = SourceTree()
    text = "--- /dev/null\n+++ ../src-work/minecraft/net/New.java\n@@ -0,0 +1,2 @@\n+a\n+b\n"

    [report] = _apply(tree, text)

    assert report.status is PatchStatus.SUCCESS
    assert tree.text == {"net/New.java": "a\nb"}


def test_delete_to_dev_null(make_patch) -> None:
    tree = SourceTree(text={"net/Gone.java": "x\ny\n"})
    text = "--- ../src-base/minecraft/net/Gone.java\n+++ /dev/null\n@@ -1,2 +0,0 @@\n-x\n-y\n"

    [report] = _apply(tree, text)

    assert report.status is PatchStatus.SUCCESS
    assert "net/Gone.java" not in tree


def test_dry_run_leaves_tree_untouched(tree, make_patch) -> None:
    text = make_patch("net/Beta.java", "@@ -1 +1 @@\n-one\n+ONE\n")
    before = dict(tree.text)

    [report] = _apply(tree, text, dry_run=True)

    assert report.status is PatchStatus.SUCCESS
    assert tree.text == before


def test_whitespace_differences_tolerated_by_default(tree, make_patch) -> None:
    text = make_patch("net/Alpha.java", "@@ -2,2 +2,2 @@\n-\tint a;\n+    int alpha;\n     int b;\n")

    [report] = _apply(tree, text)
    assert report.status is PatchStatus.SUCCESS
    assert "int alpha;" in tree.text["net/Alpha.java"]


def test_whitespace_strict_engine(tree, make_patch) -> None:
    text = make_patch("net/Alpha.java", "@@ -2,2 +2,2 @@\n-\tint a;\n+    int alpha;\n     int b;\n")

    [report] = _apply(tree, text, engine=ContextualPatchEngine(ignore_whitespace=False))

    assert report.status is PatchStatus.FAILED


def test_binary_patch_is_reported_failed() -> None:
    text = "diff --git a/b/c/img.png a/b/c/img.png\nGIT binary patch\nliteral 0\n"

    [report] = _apply(SourceTree(), text)

    assert report.status is PatchStatus.FAILED
    assert report.hunks == []
    assert "unsupported" in str(report.failure)


def test_negative_fuzz_rejected(tree) -> None:
    with pytest.raises(ValueError):
        _apply(tree, "", max_fuzz=-1)
