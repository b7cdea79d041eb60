"""Patch Stage core: in-memory source tree."""

from __future__ import annotations

from typing import Dict, Iterator, Mapping, Optional

TEXT_SUFFIX = ".java"
# undecodable bytes in text entries are kept as lone surrogates
TEXT_ERRORS = "surrogateescape"


def is_text_path(path: str) -> bool:
    """Exact, case-sensitive suffix check deciding text vs resource storage."""
    return path.endswith(TEXT_SUFFIX)


class SourceTree:
    """
    Two key-unique mappings keyed by relative '/'-separated path:
      - text:      path -> str   (sources, the only entries patches touch)
      - resources: path -> bytes (everything else)

    A path lives in at most one of the two mappings; storing it in one
    removes it from the other.
    """

    def __init__(
        self,
        text: Optional[Mapping[str, str]] = None,
        resources: Optional[Mapping[str, bytes]] = None,
    ) -> None:
        self.text: Dict[str, str] = {}
        self.resources: Dict[str, bytes] = {}
        for path, data in (resources or {}).items():
            self.put_resource(path, data)
        for path, content in (text or {}).items():
            self.put_text(path, content)

    def put_text(self, path: str, content: str) -> None:
        self.resources.pop(path, None)
        self.text[path] = content

    def put_resource(self, path: str, data: bytes) -> None:
        self.text.pop(path, None)
        self.resources[path] = data

    def put(self, path: str, data: bytes, encoding: str = "utf-8") -> None:
        """Route raw file bytes into the mapping chosen by is_text_path."""
        if is_text_path(path):
            self.put_text(path, data.decode(encoding, TEXT_ERRORS))
        else:
            self.put_resource(path, data)

    def get_text(self, path: str) -> Optional[str]:
        return self.text.get(path)

    def get_resource(self, path: str) -> Optional[bytes]:
        return self.resources.get(path)

    def remove(self, path: str) -> bool:
        removed = self.text.pop(path, None) is not None
        removed = self.resources.pop(path, None) is not None or removed
        return removed

    def paths(self) -> Iterator[str]:
        yield from sorted(set(self.text) | set(self.resources))

    def __contains__(self, path: object) -> bool:
        return path in self.text or path in self.resources

    def __len__(self) -> int:
        return len(self.text) + len(self.resources)

    def __repr__(self) -> str:
        return f"SourceTree(text={len(self.text)}, resources={len(self.resources)})"
