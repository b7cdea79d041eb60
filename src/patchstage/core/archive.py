"""Patch Stage core: filesystem and zip archive layer."""

from __future__ import annotations

import os
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Tuple

from .errors import PipelineIOError
from .tree import TEXT_ERRORS, SourceTree

ARCHIVE_SUFFIXES = (".zip", ".jar")
TEXT_ENCODING = "utf-8"


@contextmanager
def io_guard(action: str, path: Path) -> Iterator[None]:
    """Re-raise filesystem and archive errors as PipelineIOError."""
    try:
        yield
    except (OSError, UnicodeDecodeError, zipfile.BadZipFile) as exc:
        raise PipelineIOError(f"Failed to {action} {path}: {exc}", details={"path": str(path), "action": action}) from exc


def is_archive(path: Path) -> bool:
    return path.suffix.lower() in ARCHIVE_SUFFIXES


def relative_name(path: Path, root: Path) -> str:
    return path.relative_to(root).as_posix()


def _reraise(exc: OSError) -> None:
    raise exc


def iter_tree_files(root: Path) -> Iterator[Tuple[str, Path]]:
    """
    Yield (relative '/'-path, file) under `root` in tree order: top-down,
    a directory's files (sorted) before its subdirectories (sorted).
    A single file is yielded relative to its parent directory.
    """
    if root.is_file():
        yield root.name, root
        return
    with io_guard("walk", root):
        for dirpath, dirnames, filenames in os.walk(root, onerror=_reraise):
            dirnames.sort()
            for name in sorted(filenames):
                path = Path(dirpath) / name
                yield relative_name(path, root), path


def iter_archive_entries(archive: Path) -> Iterator[Tuple[str, bytes]]:
    """Yield (entry name, bytes) for every file entry, in archive order."""
    with io_guard("read archive", archive):
        with zipfile.ZipFile(archive) as zf:
            entries: List[Tuple[str, bytes]] = [
                (info.filename, zf.read(info)) for info in zf.infolist() if not info.is_dir()
            ]
    yield from entries


def read_bytes(path: Path) -> bytes:
    with io_guard("read", path):
        return path.read_bytes()


def read_text(path: Path) -> str:
    with io_guard("read", path):
        return path.read_text(encoding=TEXT_ENCODING)


def read_archive_tree(archive: Path) -> SourceTree:
    """Load an archive into a SourceTree, routing entries by is_text_path."""
    tree = SourceTree()
    for name, data in iter_archive_entries(archive):
        tree.put(name, data, encoding=TEXT_ENCODING)
    return tree


def write_archive_tree(tree: SourceTree, target: Path) -> int:
    """Write every tree entry to a zip at `target`; returns the entry count."""
    with io_guard("write archive", target):
        target.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for path in tree.paths():
                content = tree.get_text(path)
                if content is not None:
                    zf.writestr(path, content.encode(TEXT_ENCODING, TEXT_ERRORS))
                else:
                    zf.writestr(path, tree.resources[path])
    return len(tree)
