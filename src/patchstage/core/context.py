"""Patch Stage core: patch-engine view onto the source tree."""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from .errors import MalformedTargetPath
from .tree import SourceTree

STRIP_SEGMENTS = 3
NEWLINE = "\n"

_LINE_SPLIT = re.compile(r"\r\n|\r|\n")


def strip_target(target: str, segments: int = STRIP_SEGMENTS) -> str:
    """
    Normalize a patch header path to a tree key: backslashes become '/',
    then everything up to and including the `segments`-th '/' is dropped.

        strip_target("../src-base/minecraft/net/Foo.java") == "net/Foo.java"
    """
    target = target.replace("\\", "/")
    index = 0
    for _ in range(segments):
        found = target.find("/", index)
        if found < 0:
            raise MalformedTargetPath(
                f"Patch target {target!r} has fewer than {segments} path segments.",
                details={"target": target, "segments": segments},
            )
        index = found + 1
    return target[index:]


def split_lines(content: str) -> List[str]:
    lines = _LINE_SPLIT.split(content)
    # trailing empty lines do not count as content
    while lines and lines[-1] == "":
        lines.pop()
    return lines


class ContextAccessor:
    """
    Read/write access for a patch engine to the text entries of a SourceTree.

    The tree is held by reference: every write lands in the shared tree
    immediately, so an engine failure on one file never loses earlier writes.
    """

    def __init__(self, tree: SourceTree, segments: int = STRIP_SEGMENTS) -> None:
        self.tree = tree
        self.segments = segments

    def strip(self, target: str) -> str:
        return strip_target(target, self.segments)

    def read(self, target: str) -> Optional[List[str]]:
        content = self.tree.get_text(self.strip(target))
        if content is None:
            return None
        return split_lines(content)

    def write(self, target: str, lines: Sequence[str]) -> None:
        self.tree.put_text(self.strip(target), NEWLINE.join(lines))

    def delete(self, target: str) -> bool:
        return self.tree.remove(self.strip(target))
