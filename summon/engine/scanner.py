"""File-system scanner producing FILE items for the search index."""

import os
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from .models import IndexedItem, ItemType

DEFAULT_EXTENSIONS = (
    "txt", "md", "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx", "csv", "json", "xml",
    "html", "css", "js", "ts", "py", "rs", "go", "java", "c", "cpp", "h", "hpp", "swift",
)


class FileScanner:
    """
    Walks a set of directories for files with allowed extensions.

    Each root is walked to ``max_depth`` levels (the root's own files are
    depth 1), symlinks are not followed, and at most ``max_files_per_dir``
    files are taken per root. Results are cached until the directories or
    extensions change.
    """

    def __init__(
        self,
        directories: Iterable[Path],
        extensions: Optional[Sequence[str]] = None,
        max_depth: int = 3,
        max_files_per_dir: int = 100,
    ):
        self.directories: Tuple[Path, ...] = tuple(Path(d).expanduser() for d in directories)
        self.extensions = self._normalize_extensions(extensions)
        self.max_depth = max_depth
        self.max_files_per_dir = max_files_per_dir
        self._cache: Optional[Tuple[IndexedItem, ...]] = None

    @staticmethod
    def _normalize_extensions(extensions: Optional[Sequence[str]]) -> frozenset:
        if extensions is None:
            extensions = DEFAULT_EXTENSIONS
        return frozenset(ext.lower().lstrip(".") for ext in extensions)

    @classmethod
    def from_config(cls, files_config) -> "FileScanner":
        return cls(
            files_config.directories,
            extensions=files_config.extensions,
            max_depth=files_config.max_depth,
            max_files_per_dir=files_config.max_files_per_dir,
        )

    def scan(self) -> Tuple[IndexedItem, ...]:
        """Return FILE items for every matching file, using the cache when valid."""
        if self._cache is not None:
            return self._cache

        items: List[IndexedItem] = []
        for root in self.directories:
            if not root.is_dir():
                logger.debug(f"Skipping missing directory: {root}")
                continue
            items.extend(self._scan_directory(root))

        self._cache = tuple(items)
        logger.info(f"Scanned {len(self.directories)} directories: {len(items)} files")
        return self._cache

    def _scan_directory(self, root: Path) -> List[IndexedItem]:
        found: List[IndexedItem] = []
        root_depth = len(root.parts)

        for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
            depth = len(Path(dirpath).parts) - root_depth + 1
            if depth >= self.max_depth:
                dirnames[:] = []
            dirnames.sort()

            for filename in sorted(filenames):
                full_path = Path(dirpath) / filename
                if not self._is_allowed(full_path):
                    continue
                path_str = str(full_path)
                found.append(IndexedItem(
                    id=path_str,
                    name=filename,
                    path=path_str,
                    item_type=ItemType.FILE,
                ))
                if len(found) >= self.max_files_per_dir:
                    return found
        return found

    def _is_allowed(self, path: Path) -> bool:
        suffix = path.suffix.lower().lstrip(".")
        if not suffix or suffix not in self.extensions:
            return False
        try:
            return path.is_file() and not path.is_symlink()
        except OSError as e:
            logger.debug(f"Cannot stat {path}: {e}")
            return False

    def update_directories(self, directories: Iterable[Path]) -> None:
        self.directories = tuple(Path(d).expanduser() for d in directories)
        self.invalidate()

    def update_extensions(self, extensions: Sequence[str]) -> None:
        self.extensions = self._normalize_extensions(extensions)
        self.invalidate()

    def invalidate(self) -> None:
        self._cache = None
