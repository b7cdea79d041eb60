"""Patch Stage core: patch text normalization & dialect detection."""

from __future__ import annotations

import re
from typing import Callable, List, Set, Tuple, Dict, Any, Optional


class PatchInputNormalizer:
    """
    Responsibilities:
      - Strip a UTF-8 BOM and normalize line endings to \n.
      - Detect the unified-diff dialect (git / index / classic).
      - Split the text into per-file blocks for UnifiedDiffParser.

    Each block is a dict: {"lines": [...], "dialect": str, "index_path": Optional[str]}
    """

    DIALECT_CLASSIC = "Classic Unified"
    DIALECT_GIT = "Git Unified"
    DIALECT_INDEX = "Index style"

    # how far past a '--- ' line we look for its '+++ ' partner
    HEADER_LOOKAHEAD = 60

    RE_HUNK = re.compile(r"^@@\s+\-(\d+)(?:,(\d+))?\s+\+(\d+)(?:,(\d+))?\s+@@(.*)$")

    def normalize(self, raw_text: str) -> Tuple[str, str, List[Dict[str, Any]]]:
        text = raw_text.lstrip("\ufeff")
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        lines = text.split("\n")

        if any(l.startswith("diff --git ") for l in lines):
            dialect = self.DIALECT_GIT
            blocks = self._split(lines, dialect, lambda i: lines[i].startswith("diff --git "))
        elif any(l.startswith("Index: ") for l in lines):
            dialect = self.DIALECT_INDEX
            blocks = self._split(lines, dialect, lambda i: lines[i].startswith("Index: "))
            for block in blocks:
                block["index_path"] = block["lines"][0][len("Index: "):].strip()
        else:
            # Headerless hunks and non-patch text also land here; the parser yields no files for them.
            dialect = self.DIALECT_CLASSIC
            headers = self._classic_header_indices(lines)
            blocks = self._split(lines, dialect, lambda i: i in headers)

        return text, dialect, blocks

    def _classic_header_indices(self, lines: List[str]) -> Set[int]:
        """Indices of '--- ' header lines; counted hunk bodies are skipped."""
        headers: Set[int] = set()
        old_left = new_left = 0
        for i, line in enumerate(lines):
            if old_left > 0 or new_left > 0:
                if line.startswith("\\"):
                    continue
                tag = line[:1]
                if tag != "+":
                    old_left -= 1
                if tag != "-":
                    new_left -= 1
                continue
            m = self.RE_HUNK.match(line)
            if m:
                old_left = int(m.group(2)) if m.group(2) is not None else 1
                new_left = int(m.group(4)) if m.group(4) is not None else 1
            elif self._is_classic_header(lines, i):
                headers.add(i)
        return headers

    def _is_classic_header(self, lines: List[str], i: int) -> bool:
        if not lines[i].startswith("--- "):
            return False
        for j in range(i + 1, min(i + self.HEADER_LOOKAHEAD, len(lines))):
            if lines[j].startswith("+++ "):
                return True
            if lines[j].startswith("@@ "):
                return False
        return False

    def _split(self, lines: List[str], dialect: str, starts_block: Callable[[int], bool]) -> List[Dict[str, Any]]:
        blocks: List[Dict[str, Any]] = []
        cur: Optional[List[str]] = None
        for i, line in enumerate(lines):
            if starts_block(i):
                cur = [line]
                blocks.append({"lines": cur, "dialect": dialect, "index_path": None})
            elif cur is not None:
                cur.append(line)
            # preamble before the first block is dropped
        return blocks
