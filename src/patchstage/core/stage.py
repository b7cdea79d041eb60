"""Patch Stage core: apply one stage's patches, classify outcomes, write rejects."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence, Set

from .archive import io_guard
from .context import ContextAccessor
from .models import PatchReport, PatchStatus, StageResult
from .records import PatchRecord

LOGGER = logging.getLogger(__name__)

REJECT_HEADER = "++++ REJECTED PATCH {hunk_id}\n"
REJECT_FOOTER = "\n++++ END PATCH\n"


class StageProcessor:
    """
    Runs every PatchRecord of a stage against the live tree.

    Per PatchReport:
      - Failed:  rejected hunks are appended to the record's .rej file (a stale
                 one is removed first); the first failure becomes the stage failure.
      - Fuzzed:  the stage's fuzz flag is set and stays set; a cause carried
                 on the report is kept if no failure was recorded yet.
      - Success: logged only.

    A recorded failure does not stop the remaining patches.
    """

    def __init__(self, name: str) -> None:
        self.name = name

    def apply_stage(self, records: Sequence[PatchRecord], accessor: ContextAccessor) -> StageResult:
        result = StageResult(name=self.name)
        fresh_rejects: Set[Path] = set()

        LOGGER.debug("Applying patches for stage %s", self.name)
        for record in records:
            for report in record.apply(dry_run=False):
                result.reports.append(report)
                status = report.status
                if status is PatchStatus.FAILED:
                    self._handle_failed(result, record, report, accessor, fresh_rejects)
                elif status is PatchStatus.FUZZED:
                    self._handle_fuzzed(result, report, accessor)
                else:
                    LOGGER.debug("Patch succeeded: %s", accessor.strip(report.target))
                    result.add_log("INFO", "Patch succeeded.", target=report.target, patch=record.name)

        if result.fuzzed:
            LOGGER.warning("Patches fuzzed in stage %s!", self.name)
            result.add_log("WARN", "Patches fuzzed.", stage=self.name, fuzzed=result.count(PatchStatus.FUZZED))
        return result

    def _handle_failed(
        self,
        result: StageResult,
        record: PatchRecord,
        report: PatchReport,
        accessor: ContextAccessor,
        fresh_rejects: Set[Path],
    ) -> None:
        display = accessor.strip(report.target)
        LOGGER.error("Patching failed: %s %s", display, report.failure)

        failed = report.failed_hunks()
        for hunk in failed:
            reason = hunk.failure if hunk.failure is not None else ""
            LOGGER.error("  %d: %s @ %d", hunk.hunk_id, reason, hunk.index)
        for hunk in report.fuzzed_hunks():
            LOGGER.info("  %d fuzzed %d!", hunk.hunk_id, hunk.fuzz)

        LOGGER.error("  %d/%d failed", len(failed), len(report.hunks))
        reject = None
        if failed:
            reject = self._write_rejects(record.reject_path, report, fresh_rejects)
            if reject not in result.rejects:
                result.rejects.append(reject)
            LOGGER.error("  Rejects written to %s", reject)
        result.add_log(
            "ERROR", "Patching failed.",
            target=report.target, patch=record.name, failed=len(failed), total=len(report.hunks),
            reject=str(reject) if reject is not None else None,
        )

        if result.failure is None:
            result.failure = report.failure

    def _handle_fuzzed(self, result: StageResult, report: PatchReport, accessor: ContextAccessor) -> None:
        LOGGER.info("Patching fuzzed: %s", accessor.strip(report.target))
        result.fuzzed = True
        for hunk in report.fuzzed_hunks():
            LOGGER.info("  %d fuzzed %d!", hunk.hunk_id, hunk.fuzz)
        result.add_log(
            "WARN", "Patching fuzzed.",
            target=report.target, hunks={h.hunk_id: h.fuzz for h in report.fuzzed_hunks()},
        )

        if result.failure is None:
            result.failure = report.failure

    def _write_rejects(self, reject: Path, report: PatchReport, fresh_rejects: Set[Path]) -> Path:
        """Append one block per failed hunk, ascending id; returns the absolute reject path."""
        with io_guard("write reject", reject):
            reject = reject.resolve()
            if reject not in fresh_rejects:
                # stale output from an earlier run is replaced, never appended to
                if reject.exists():
                    reject.unlink()
                fresh_rejects.add(reject)
            reject.parent.mkdir(parents=True, exist_ok=True)
            with reject.open("a", encoding="utf-8", newline="\n") as handle:
                for hunk in report.failed_hunks():
                    handle.write(REJECT_HEADER.format(hunk_id=hunk.hunk_id))
                    handle.write("\n".join(hunk.lines))
                    handle.write(REJECT_FOOTER)
        return reject
