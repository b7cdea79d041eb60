"""Patch Stage core: unified diff parsing (classic/git/index dialects)."""

from __future__ import annotations

import re
from typing import List, Optional, Dict, Any

from .normalizer import PatchInputNormalizer
from .models import DEV_NULL, Hunk, FilePatch, PatchSet


class UnifiedDiffParser:
    """
    Parses normalized file blocks into PatchSet/FilePatch/Hunk.

    Header paths are kept exactly as written (no a/ b/ stripping); mapping them
    onto tree entries is the ContextAccessor's job. Hunk bodies are read by
    their declared line counts, and the literal body lines are kept so that a
    rejected hunk can be reproduced verbatim.
    """

    RE_DIFF_GIT = re.compile(r"^diff --git (.+?) (.+?)\s*$")
    RE_HUNK = PatchInputNormalizer.RE_HUNK

    GIT_METADATA = (
        ("index ", "index"),
        ("old mode ", "old_mode"),
        ("new mode ", "new_mode"),
        ("new file mode ", "new_file_mode"),
        ("deleted file mode ", "deleted_file_mode"),
        ("similarity index ", "similarity_index"),
        ("rename from ", "rename_from"),
        ("rename to ", "rename_to"),
    )
    BINARY_MARKERS = ("GIT binary patch", "Binary files ")

    def __init__(self) -> None:
        self.normalizer = PatchInputNormalizer()

    def parse_text(self, raw_text: str) -> PatchSet:
        _, dialect, blocks = self.normalizer.normalize(raw_text)
        return self.parse(dialect, blocks)

    def parse(self, dialect: str, file_blocks: List[Dict[str, Any]]) -> PatchSet:
        patchset = PatchSet(dialect=dialect, files=[])
        for block in file_blocks:
            lines = block["lines"]
            if dialect == PatchInputNormalizer.DIALECT_GIT:
                fp = self._parse_git_block(lines)
            else:
                fp = self._parse_headed_block(lines, block.get("index_path"))
            if fp is not None:
                patchset.files.append(fp)
        return patchset

    def _parse_path_from_header_line(self, line: str, prefix: str) -> str:
        # Path ends at the first TAB (timestamp follows) or end of line.
        return line[len(prefix):].split("\t", 1)[0].strip()

    def _infer_operation(self, old_path: str, new_path: str, metadata: Dict[str, Any]) -> str:
        if metadata.get("new_file_mode") or old_path == DEV_NULL:
            return "create"
        if metadata.get("deleted_file_mode") or new_path == DEV_NULL:
            return "delete"
        # Header paths usually differ (a/ vs b/, src-base vs src-work); only git metadata marks a rename.
        if metadata.get("rename_from") or metadata.get("rename_to"):
            return "rename"
        return "modify"

    def _binary_reason(self, lines: List[str]) -> str:
        for ln in lines:
            for marker in self.BINARY_MARKERS:
                if ln.startswith(marker):
                    return f"{marker.strip()} (unsupported)"
        return ""

    def _find_headers(self, lines: List[str], start: int):
        """Locate '--- ' then '+++ '; returns (old, new, index after +++) or None."""
        i = start
        while i < len(lines) and not lines[i].startswith("--- "):
            if self.RE_HUNK.match(lines[i]):
                return None
            i += 1
        if i >= len(lines):
            return None
        old = self._parse_path_from_header_line(lines[i], "--- ")
        i += 1
        while i < len(lines) and not lines[i].startswith("+++ "):
            i += 1
        if i >= len(lines):
            return None
        new = self._parse_path_from_header_line(lines[i], "+++ ")
        return old, new, i + 1

    def _parse_git_block(self, lines: List[str]) -> Optional[FilePatch]:
        m = self.RE_DIFF_GIT.match(lines[0] if lines else "")
        if not m:
            return None

        metadata: Dict[str, Any] = {"diff_git": lines[0]}
        old_path, new_path = m.group(1).strip(), m.group(2).strip()

        i = 1
        while i < len(lines) and not lines[i].startswith("--- ") and not self.RE_HUNK.match(lines[i]):
            for prefix, key in self.GIT_METADATA:
                if lines[i].startswith(prefix):
                    metadata[key] = lines[i][len(prefix):].strip()
                    break
            i += 1

        reason = self._binary_reason(lines)
        if reason:
            return FilePatch(old_path=old_path, new_path=new_path, operation="modify",
                             is_binary=True, binary_reason=reason, metadata=metadata)

        headers = self._find_headers(lines, 1)
        if headers is not None:
            old_path, new_path, i = headers
        fp = FilePatch(old_path=old_path, new_path=new_path,
                       operation=self._infer_operation(old_path, new_path, metadata), metadata=metadata)
        fp.hunks = self._parse_hunks_from(lines[i:])
        return fp

    def _parse_headed_block(self, lines: List[str], index_path: Optional[str]) -> Optional[FilePatch]:
        metadata: Dict[str, Any] = {}
        if index_path:
            metadata["index_path"] = index_path

        reason = self._binary_reason(lines)
        if reason:
            display = index_path or "(unknown)"
            return FilePatch(old_path=display, new_path=display, operation="modify",
                             is_binary=True, binary_reason=reason, metadata=metadata)

        headers = self._find_headers(lines, 0)
        if headers is None:
            return None
        old_path, new_path, i = headers
        fp = FilePatch(old_path=old_path, new_path=new_path,
                       operation=self._infer_operation(old_path, new_path, metadata), metadata=metadata)
        fp.hunks = self._parse_hunks_from(lines[i:])
        return fp

    def _parse_hunks_from(self, lines: List[str]) -> List[Hunk]:
        hunks: List[Hunk] = []
        current: Optional[Hunk] = None
        old_left = new_left = 0

        for ln in lines:
            m = self.RE_HUNK.match(ln)
            if m:
                current = Hunk(
                    hunk_id=len(hunks) + 1,
                    old_start=int(m.group(1)),
                    old_count=int(m.group(2)) if m.group(2) is not None else 1,
                    new_start=int(m.group(3)),
                    new_count=int(m.group(4)) if m.group(4) is not None else 1,
                    header=ln.strip(),
                )
                hunks.append(current)
                old_left, new_left = current.old_count, current.new_count
                continue

            if current is None:
                continue
            if ln.startswith("\\"):
                # "\ No newline at end of file": kept for rejects, not content
                if current.raw_lines:
                    current.raw_lines.append(ln)
                continue
            if old_left <= 0 and new_left <= 0:
                # body complete; trailing noise until the next @@
                continue

            tag, text = (ln[0], ln[1:]) if ln else (" ", "")
            if tag not in (" ", "+", "-"):
                # best-effort: treat as context
                tag, text = " ", ln
            current.lines.append((tag, text))
            current.raw_lines.append(ln)
            if tag != "+":
                old_left -= 1
            if tag != "-":
                new_left -= 1

        return hunks
