"""Patch Stage core: patch engine interface and the default context-fuzz engine."""

from __future__ import annotations

import re
from typing import List, Optional, Protocol, Sequence, Tuple

from .context import ContextAccessor
from .errors import HunkFailure, PatchFailure, PatchTargetNotFound
from .models import FilePatch, Hunk, HunkReport, PatchReport, PatchStatus
from .parser import UnifiedDiffParser

HunkLines = List[Tuple[str, str]]


class PatchEngine(Protocol):
    """Anything that can apply patch text to a tree through an accessor."""

    def apply(
        self,
        patch_text: str,
        accessor: ContextAccessor,
        max_fuzz: int,
        dry_run: bool = False,
    ) -> List[PatchReport]:
        ...


class ContextualPatchEngine:
    """
    Applies unified diffs hunk by hunk against accessor content.

    Matching:
      - The hunk's context and removal lines are searched across the whole file,
        nearest to the expected position first; ties go to the earlier line.
      - An exact-context match is a Success at any offset.
      - Failing that, up to `max_fuzz` leading and trailing context lines are
        dropped and the search repeats; a match at level n is Fuzzed(n).
      - No match within tolerance is a Failed hunk; later hunks still run.

    Successful hunks of a partially failing file are written back.
    """

    def __init__(self, ignore_whitespace: bool = True) -> None:
        self.ignore_whitespace = ignore_whitespace
        self.parser = UnifiedDiffParser()

    def apply(
        self,
        patch_text: str,
        accessor: ContextAccessor,
        max_fuzz: int,
        dry_run: bool = False,
    ) -> List[PatchReport]:
        if max_fuzz < 0:
            raise ValueError(f"max_fuzz must be >= 0, got {max_fuzz}")
        patchset = self.parser.parse_text(patch_text)
        return [self._apply_filepatch(fp, accessor, max_fuzz, dry_run) for fp in patchset.files]

    def _apply_filepatch(self, fp: FilePatch, accessor: ContextAccessor, max_fuzz: int, dry_run: bool) -> PatchReport:
        target = fp.target
        report = PatchReport(target=target)

        if fp.is_binary:
            report.file_failed = True
            report.failure = PatchFailure(f"{target}: {fp.binary_reason}", details={"target": target})
            return report

        original = accessor.read(target)
        if original is None:
            if fp.operation != "create":
                failure = PatchTargetNotFound(target)
                report.file_failed = True
                report.failure = failure
                report.hunks = [HunkReport(hunk=h, status=PatchStatus.FAILED, failure=failure) for h in fp.hunks]
                return report
            original = []

        lines = list(original)
        drift = 0  # actual - expected position of the last applied hunk
        delta = 0  # net line count change so far
        applied = 0

        for hunk in fp.hunks:
            base = self._expected_pos(hunk) + delta
            expected = base + drift
            located = self._locate_hunk_position(lines, hunk, expected, max_fuzz)
            if located is None:
                report.hunks.append(HunkReport(
                    hunk=hunk,
                    status=PatchStatus.FAILED,
                    failure=HunkFailure(
                        f"Hunk {hunk.hunk_id} ({hunk.header}) did not match near line {expected + 1}",
                        details={"target": target, "hunk_id": hunk.hunk_id, "expected_line": expected + 1},
                    ),
                ))
                continue

            pos, lead, fuzz, body = located
            lines = self._apply_hunk_at(lines, body, pos)
            drift = (pos - lead) - base
            delta += self._count_tag(body, "+") - self._count_tag(body, "-")
            applied += 1
            report.hunks.append(HunkReport(
                hunk=hunk,
                status=PatchStatus.FUZZED if fuzz else PatchStatus.SUCCESS,
                index=pos,
                offset=(pos - lead) - base,
                fuzz=fuzz if fuzz else None,
            ))

        failed = report.failed_hunks()
        if failed:
            report.failure = PatchFailure(
                f"{len(failed)} of {len(fp.hunks)} hunks failed for {target}",
                details={"target": target, "hunks": [h.hunk_id for h in failed]},
            )

        if not dry_run and (applied or fp.operation == "create"):
            if fp.operation == "delete" and not failed and not lines:
                accessor.delete(target)
            else:
                accessor.write(target, lines)
        return report

    def _expected_pos(self, hunk: Hunk) -> int:
        # A pure insertion (old_count == 0) names the line it follows.
        if hunk.old_count == 0:
            return max(0, hunk.old_start)
        return max(0, hunk.old_start - 1)

    def _count_tag(self, hunk_lines: Sequence[Tuple[str, str]], tag: str) -> int:
        return sum(1 for t, _ in hunk_lines if t == tag)

    def _normalize_match_line(self, s: str) -> str:
        s = s.rstrip()
        if self.ignore_whitespace:
            s = re.sub(r"\s+", " ", s.lstrip())
        return s

    def _trim_context(self, hunk_lines: HunkLines, fuzz: int) -> Tuple[HunkLines, int]:
        """Drop up to `fuzz` context lines from each end; returns (body, leading dropped)."""
        start, end = 0, len(hunk_lines)
        while start < min(fuzz, end) and hunk_lines[start][0] == " ":
            start += 1
        tail = 0
        while tail < fuzz and end - 1 > start and hunk_lines[end - 1][0] == " ":
            end -= 1
            tail += 1
        return hunk_lines[start:end], start

    def _locate_hunk_position(
        self,
        lines: List[str],
        hunk: Hunk,
        expected: int,
        max_fuzz: int,
    ) -> Optional[Tuple[int, int, int, HunkLines]]:
        """Returns (position, leading lines dropped, fuzz used, matched body) or None."""
        previous: Optional[HunkLines] = None
        for fuzz in range(max_fuzz + 1):
            body, lead = self._trim_context(hunk.lines, fuzz)
            if body == previous:
                # nothing more to trim; a higher level cannot match differently
                break
            previous = body
            pos = self._search(lines, body, expected + lead)
            if pos is not None:
                return pos, lead, fuzz, body
        return None

    def _search(self, lines: List[str], body: HunkLines, expected: int) -> Optional[int]:
        anchors = [self._normalize_match_line(s) for (t, s) in body if t in (" ", "-")]
        expected = min(max(expected, 0), len(lines))
        if not anchors:
            return expected

        normalized = [self._normalize_match_line(s) for s in lines]
        last = len(lines) - len(anchors)
        if last < 0:
            return None
        for distance in range(0, max(expected, last - expected) + 1):
            for pos in (expected - distance, expected + distance):
                if 0 <= pos <= last and normalized[pos:pos + len(anchors)] == anchors:
                    return pos
                if distance == 0:
                    break
        return None

    def _apply_hunk_at(self, lines: List[str], body: HunkLines, pos: int) -> List[str]:
        out = lines[:pos]
        i = pos
        for (t, s) in body:
            if t == " ":
                # keep the file's own line
                out.append(lines[i])
                i += 1
            elif t == "-":
                i += 1
            elif t == "+":
                out.append(s)
        out.extend(lines[i:])
        return out
