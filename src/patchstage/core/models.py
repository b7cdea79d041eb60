"""Patch Stage core: shared data models."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Tuple, Dict, Any, Optional

from .errors import PipelineFailed

if TYPE_CHECKING:
    from pathlib import Path

    from .tree import SourceTree

DEV_NULL = "/dev/null"


@dataclass
class Hunk:
    hunk_id: int
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    header: str
    lines: List[Tuple[str, str]] = field(default_factory=list)  # (tag, text)
    raw_lines: List[str] = field(default_factory=list)  # body as written in the patch


@dataclass
class FilePatch:
    old_path: str
    new_path: str
    operation: str  # create/modify/delete/rename
    hunks: List[Hunk] = field(default_factory=list)
    is_binary: bool = False
    binary_reason: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def target(self) -> str:
        # Header path exactly as written; the accessor normalizes it.
        return self.new_path if self.old_path == DEV_NULL else self.old_path


@dataclass
class PatchSet:
    dialect: str
    files: List[FilePatch] = field(default_factory=list)

    def total_hunks(self) -> int:
        return sum(len(fp.hunks) for fp in self.files)

    def total_files(self) -> int:
        return len(self.files)


class PatchStatus(str, Enum):
    """Outcome of applying a hunk or a file patch, ordered by severity."""

    SUCCESS = "Success"
    FUZZED = "Fuzzed"
    FAILED = "Failed"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @property
    def is_success(self) -> bool:
        return self is not PatchStatus.FAILED

    @classmethod
    def worst(cls, statuses) -> "PatchStatus":
        worst = cls.SUCCESS
        for status in statuses:
            if status.severity > worst.severity:
                worst = status
        return worst


_SEVERITY = {PatchStatus.SUCCESS: 0, PatchStatus.FUZZED: 1, PatchStatus.FAILED: 2}


@dataclass
class HunkReport:
    hunk: Hunk
    status: PatchStatus
    index: int = -1  # 0-based line the hunk was applied at
    offset: int = 0
    fuzz: Optional[int] = None
    failure: Optional[Exception] = None

    @property
    def hunk_id(self) -> int:
        return self.hunk.hunk_id

    @property
    def lines(self) -> List[str]:
        return self.hunk.raw_lines


@dataclass
class PatchReport:
    target: str
    hunks: List[HunkReport] = field(default_factory=list)
    failure: Optional[Exception] = None
    file_failed: bool = False  # whole-file failure (missing target, binary)

    @property
    def status(self) -> PatchStatus:
        if self.file_failed:
            return PatchStatus.FAILED
        return PatchStatus.worst(h.status for h in self.hunks)

    def failed_hunks(self) -> List[HunkReport]:
        failed = [h for h in self.hunks if h.status is PatchStatus.FAILED]
        return sorted(failed, key=lambda h: h.hunk_id)

    def fuzzed_hunks(self) -> List[HunkReport]:
        return [h for h in self.hunks if h.status is PatchStatus.FUZZED]


def _log_entry(level: str, message: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    entry = {"ts": time.time(), "level": level, "message": message}
    entry.update(fields)
    return entry


@dataclass
class StageResult:
    name: str
    fuzzed: bool = False
    failure: Optional[Exception] = None
    reports: List[PatchReport] = field(default_factory=list)
    rejects: List["Path"] = field(default_factory=list)
    logs: List[Dict[str, Any]] = field(default_factory=list)

    def add_log(self, level: str, message: str, **fields: Any) -> None:
        self.logs.append(_log_entry(level, message, fields))

    def count(self, status: PatchStatus) -> int:
        return sum(1 for r in self.reports if r.status is status)


class PipelineState(str, Enum):
    IDLE = "Idle"
    PATCHING = "Patching"
    SNAPSHOTTING = "Snapshotting"
    INJECTING = "Injecting"
    DONE = "Done"
    ABORTED = "Aborted"


@dataclass
class PipelineResult:
    tree: "SourceTree"
    state: PipelineState = PipelineState.IDLE
    stages: List[StageResult] = field(default_factory=list)
    logs: List[Dict[str, Any]] = field(default_factory=list)

    def add_log(self, level: str, message: str, **fields: Any) -> None:
        self.logs.append(_log_entry(level, message, fields))

    @property
    def fuzzed(self) -> bool:
        return any(s.fuzzed for s in self.stages)

    @property
    def failures(self) -> List[Tuple[str, Exception]]:
        return [(s.name, s.failure) for s in self.stages if s.failure is not None]

    @property
    def failed(self) -> bool:
        return bool(self.failures)

    def raise_for_failure(self) -> None:
        failures = self.failures
        if failures:
            stage, cause = failures[0]
            raise PipelineFailed(
                f"{len(failures)} stage(s) recorded patch failures; first in {stage!r}: {cause}",
                details={"stages": [name for name, _ in failures]},
            ) from cause
