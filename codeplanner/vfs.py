from __future__ import annotations
from types import MappingProxyType
from typing import Dict, Iterator, Mapping


class VirtualFileSystem:
    """In-memory path -> content mapping owned by a single execution attempt."""

    def __init__(self):
        self._files: Dict[str, str] = {}

    def read(self, path: str) -> str:
        # absent paths are new files
        return self._files.get(path, "")

    def write(self, path: str, content: str) -> None:
        self._files[path] = content

    def exists(self, path: str) -> bool:
        return path in self._files

    def snapshot(self) -> Mapping[str, str]:
        return MappingProxyType(dict(self._files))

    def __contains__(self, path: object) -> bool:
        return path in self._files

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)
