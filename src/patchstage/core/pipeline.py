"""Patch Stage core: staged pipeline driver (patch, snapshot, inject)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Optional

from .archive import io_guard, iter_tree_files, read_archive_tree, read_bytes, write_archive_tree
from .context import ContextAccessor
from .engine import ContextualPatchEngine, PatchEngine
from .errors import PatchStageError
from .models import PipelineResult, PipelineState, StageResult
from .records import PATCH_SUFFIX, read_patches
from .stage import StageProcessor
from .tree import SourceTree

if TYPE_CHECKING:
    from .config import PipelineConfig

LOGGER = logging.getLogger(__name__)


@dataclass
class Stage:
    """One pipeline phase; every part is optional and skipped when absent."""

    name: str
    patch_source: Optional[Path] = None
    snapshot_target: Optional[Path] = None
    injection_sources: List[Path] = field(default_factory=list)


class PipelineDriver:
    """
    Owns the SourceTree for a run and walks the stages in declaration order:

        Idle -> Patching -> Snapshotting -> Injecting -> (next stage) ... -> Done

    Stages that recorded patch failures still lead to Done; the failures are
    reported on the PipelineResult. Any exception raised while a stage runs
    (I/O errors, malformed paths, engine errors) moves the driver to Aborted and
    propagates.
    """

    def __init__(
        self,
        tree: Optional[SourceTree] = None,
        max_fuzz: int = 0,
        engine: Optional[PatchEngine] = None,
        patch_suffix: str = PATCH_SUFFIX,
    ) -> None:
        if max_fuzz < 0:
            raise ValueError(f"max_fuzz must be >= 0, got {max_fuzz}")
        self.tree = tree if tree is not None else SourceTree()
        self.max_fuzz = max_fuzz
        self.engine: PatchEngine = engine if engine is not None else ContextualPatchEngine()
        self.patch_suffix = patch_suffix
        self.state = PipelineState.IDLE

    def run(self, stages: Iterable[Stage]) -> PipelineResult:
        result = PipelineResult(tree=self.tree)
        try:
            for stage in stages:
                result.stages.append(self._run_stage(stage, result))
        except Exception as exc:
            self.state = PipelineState.ABORTED
            result.state = self.state
            if isinstance(exc, PatchStageError):
                LOGGER.error("Pipeline aborted: %s", exc)
            else:
                LOGGER.exception("Pipeline aborted by unexpected error")
            raise

        self.state = PipelineState.DONE
        result.state = self.state
        if result.failed:
            LOGGER.error("Pipeline finished with failures in: %s", ", ".join(name for name, _ in result.failures))
        result.add_log("INFO", "Pipeline finished.", stages=len(result.stages), failed=result.failed, fuzzed=result.fuzzed)
        return result

    def _run_stage(self, stage: Stage, result: PipelineResult) -> StageResult:
        stage_result = StageResult(name=stage.name)

        if stage.patch_source is not None:
            self.state = PipelineState.PATCHING
            LOGGER.info("Applying %s patches", stage.name)
            stage_result = self.apply_patches(stage)

        if stage.snapshot_target is not None:
            self.state = PipelineState.SNAPSHOTTING
            LOGGER.info("Exporting %s patched snapshot", stage.name)
            count = write_archive_tree(self.tree, stage.snapshot_target)
            stage_result.add_log("INFO", "Snapshot written.", target=str(stage.snapshot_target), entries=count)

        if stage.injection_sources:
            self.state = PipelineState.INJECTING
            LOGGER.info("Injecting %s files", stage.name)
            count = self.inject(stage.injection_sources)
            stage_result.add_log("INFO", "Files injected.", files=count)

        result.add_log("INFO", "Stage complete.", stage=stage.name, fuzzed=stage_result.fuzzed,
                       failed=stage_result.failure is not None)
        return stage_result

    def apply_patches(self, stage: Stage) -> StageResult:
        accessor = ContextAccessor(self.tree)
        LOGGER.debug("Reading patches for stage %s", stage.name)
        records = read_patches(stage.patch_source, accessor, self.engine, self.max_fuzz, self.patch_suffix)
        return StageProcessor(stage.name).apply_stage(records, accessor)

    def inject(self, sources: Iterable[Path]) -> int:
        """Upsert every file under `sources` into the tree; later files replace earlier ones."""
        count = 0
        for source in sources:
            with io_guard("stat", source):
                exists = source.exists()
            if not exists:
                LOGGER.debug("Injection source %s does not exist; skipped.", source)
                continue
            for relative, path in iter_tree_files(source):
                self.tree.put(relative, read_bytes(path))
                count += 1
        return count


def run_configured(config: "PipelineConfig", engine: Optional[PatchEngine] = None) -> PipelineResult:
    """Load the configured input archive, run the stages, write the configured output."""
    tree = read_archive_tree(config.input) if config.input is not None else SourceTree()
    driver = PipelineDriver(tree, max_fuzz=config.max_fuzz, engine=engine, patch_suffix=config.patch_suffix)
    result = driver.run(config.build_stages())
    if config.output is not None:
        LOGGER.info("Writing final tree to %s", config.output)
        write_archive_tree(result.tree, config.output)
    return result
