"""Import specifier resolution and source text access.

Only relative specifiers (``./x``, ``../x``, ``/abs/x``) are resolved; bare
package names such as ``react`` are never looked up in ``node_modules``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

EXTENSION_CANDIDATES: Tuple[str, ...] = (".ts", ".js", ".tsx", ".jsx")


def is_relative_specifier(specifier: str) -> bool:
    return specifier.startswith(("./", "../", "/")) or specifier in (".", "..")


def candidate_paths(base: Path) -> list:
    """Ordered list of paths tried for one specifier."""
    candidates = [base]
    candidates.extend(base.with_name(base.name + ext) for ext in EXTENSION_CANDIDATES)
    candidates.extend(base / f"index{ext}" for ext in EXTENSION_CANDIDATES)
    return candidates


class SourceProvider(ABC):
    """Resolves import specifiers and reads the source text behind them."""

    @abstractmethod
    def resolve(self, specifier: str, from_path: Optional[Path]) -> Optional[Path]:
        """Return the file *specifier* refers to when imported from *from_path*."""
        ...

    @abstractmethod
    def read_text(self, path: Path) -> str:
        """Return the text of *path*; raise ``OSError`` when it cannot be read."""
        ...


class FileSourceProvider(SourceProvider):
    """Resolves specifiers against the local filesystem."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def resolve(self, specifier: str, from_path: Optional[Path]) -> Optional[Path]:
        if not is_relative_specifier(specifier):
            logger.debug("Not resolving bare specifier %r", specifier)
            return None
        directory = Path(from_path).parent if from_path is not None else Path.cwd()
        base = (directory / specifier).resolve()
        for candidate in candidate_paths(base):
            if candidate.is_file():
                return candidate
        return None

    def read_text(self, path: Path) -> str:
        return Path(path).read_text(encoding=self.encoding, errors="replace")


class InMemorySourceProvider(SourceProvider):
    """Serves sources from a ``{path: text}`` mapping (untitled buffers, tests)."""

    def __init__(self, files: Optional[Dict[str, str]] = None) -> None:
        self.files: Dict[Path, str] = {Path(k): v for k, v in (files or {}).items()}

    def add(self, path: str, text: str) -> None:
        self.files[Path(path)] = text

    def resolve(self, specifier: str, from_path: Optional[Path]) -> Optional[Path]:
        if not is_relative_specifier(specifier):
            return None
        directory = Path(from_path).parent if from_path is not None else Path("/")
        base = _normalize(directory / specifier)
        for candidate in candidate_paths(base):
            if candidate in self.files:
                return candidate
        return None

    def read_text(self, path: Path) -> str:
        try:
            return self.files[Path(path)]
        except KeyError:
            raise FileNotFoundError(str(path)) from None


def _normalize(path: Path) -> Path:
    """Collapse ``.`` and ``..`` segments without touching the filesystem."""
    parts: list = []
    for part in path.parts:
        if part == ".":
            continue
        if part == ".." and parts and parts[-1] not in ("/", ".."):
            parts.pop()
            continue
        parts.append(part)
    return Path(*parts) if parts else Path(".")
