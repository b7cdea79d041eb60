from __future__ import annotations

import sys
import textwrap
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from patchstage.core.tree import SourceTree  # noqa: E402


BASE = "../src-base/minecraft/"
WORK = "../src-work/minecraft/"


def _make_patch(path: str, body: str) -> str:
    """Build a classic unified diff in the src-base/src-work layout for `path`."""
    header = f"--- {BASE}{path}\n+++ {WORK}{path}\n"
    return header + textwrap.dedent(body).lstrip("\n")


@pytest.fixture
def make_patch():
    return _make_patch


@pytest.fixture
def tree() -> SourceTree:
    return SourceTree(
        text={
            "net/Alpha.java": "class Alpha {\n    int a;\n    int b;\n    int c;\n}\n",
            "net/Beta.java": "one\ntwo\nthree\nfour\nfive\nsix\nseven\neight\nnine\nten\n",
        },
        resources={"assets/logo.png": b"\x89PNG"},
    )


@pytest.fixture
def write_patch(tmp_path: Path):
    def _write(name: str, text: str, root: Path | None = None) -> Path:
        target = (root or tmp_path / "patches") / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
        return target

    return _write
