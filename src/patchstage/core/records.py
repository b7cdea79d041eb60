"""Patch Stage core: patch records and patch-source discovery."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Tuple

from .archive import io_guard, is_archive, iter_archive_entries, iter_tree_files, read_text, TEXT_ENCODING
from .context import ContextAccessor
from .engine import PatchEngine
from .errors import PipelineIOError
from .models import PatchReport

LOGGER = logging.getLogger(__name__)

PATCH_SUFFIX = ".patch"
REJECT_SUFFIX = ".rej"


@dataclass
class PatchRecord:
    """A parsed-on-demand patch file bound to an engine, an accessor and a fuzz cap."""

    name: str
    text: str
    reject_path: Path
    accessor: ContextAccessor
    engine: PatchEngine
    max_fuzz: int = 0

    def apply(self, dry_run: bool = False) -> List[PatchReport]:
        return self.engine.apply(self.text, self.accessor, self.max_fuzz, dry_run=dry_run)


def iter_patch_files(source: Path, suffix: str = PATCH_SUFFIX) -> Iterator[Tuple[str, str, Path]]:
    """
    Yield (name, text, reject path) for every patch under `source`:
      - directory: recursive, tree order; rejects sit beside each patch file
      - .zip/.jar: archive order; rejects go to '<archive stem>-rejects/' beside the archive
      - any other file: just that file
    Only names ending in `suffix` count as patches. A missing source raises
    PipelineIOError.
    """
    with io_guard("stat", source):
        exists = source.exists()
    if not exists:
        raise PipelineIOError(f"Patch source does not exist: {source}", details={"path": str(source), "action": "stat"})

    if source.is_dir():
        for rel, path in iter_tree_files(source):
            if rel.endswith(suffix):
                yield rel, read_text(path), path.with_name(path.name + REJECT_SUFFIX)
    elif is_archive(source):
        reject_root = source.parent / f"{source.stem}-rejects"
        for entry, data in iter_archive_entries(source):
            if entry.endswith(suffix):
                with io_guard("decode", source / entry):
                    text = data.decode(TEXT_ENCODING)
                yield entry, text, reject_root / (entry + REJECT_SUFFIX)
    elif source.name.endswith(suffix):
        yield source.name, read_text(source), source.with_name(source.name + REJECT_SUFFIX)


def read_patches(
    source: Path,
    accessor: ContextAccessor,
    engine: PatchEngine,
    max_fuzz: int = 0,
    suffix: str = PATCH_SUFFIX,
) -> List[PatchRecord]:
    records = []
    for name, text, reject_path in iter_patch_files(source, suffix):
        LOGGER.debug("Reading patch file: %s", name)
        records.append(PatchRecord(
            name=name,
            text=text,
            reject_path=reject_path,
            accessor=accessor,
            engine=engine,
            max_fuzz=max_fuzz,
        ))
    return records
