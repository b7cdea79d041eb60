"""Patch Stage core: exception taxonomy."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


class PatchStageError(Exception):
    """Base class for every error raised by the patch pipeline."""

    def __init__(self, message: str, *, details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.details: Dict[str, Any] = dict(details or {})


class HunkFailure(PatchStageError):
    """A hunk could not be located within the allowed fuzz."""


class PatchFailure(PatchStageError):
    """One or more hunks of a file patch were rejected."""


class PatchTargetNotFound(PatchFailure):
    """The patch names a file that is not present in the source tree."""

    def __init__(self, target: str) -> None:
        super().__init__(f"Target file not found: {target}", details={"target": target})
        self.target = target


class MalformedTargetPath(PatchStageError, ValueError):
    """A patch header path is too short to strip its leading segments."""


class PipelineIOError(PatchStageError):
    """Unrecoverable filesystem or archive error; aborts the run."""


class PipelineFailed(PatchStageError):
    """The pipeline finished but at least one stage recorded a failure."""


class ConfigError(PatchStageError):
    """The pipeline configuration file is unreadable or invalid."""
