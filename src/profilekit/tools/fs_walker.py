"""
Directory entry walker for profilekit.

This module lists the entries of a directory that match a filter: entry kind,
extensions, and regex patterns on the name. It respects ignore patterns and
hidden-entry settings and extracts the metadata the batch commands need.
Results are ordered by name so every command sees a deterministic listing.
"""

import os
import re
from pathlib import Path
from typing import Dict, List, Optional, Iterator, Union
from datetime import datetime
import logging

from ..models.config import WalkerConfig
from ..models.operations import EntryKind, EntryMatch, EntryMetadata


logger = logging.getLogger(__name__)


class WalkerError(Exception):
    """Raised when a directory cannot be listed."""
    pass


class EntryWalker:
    """
    Lists directory entries that match a filter.

    Supports:
    - Files, directories, or both
    - Extension filters (case-insensitive)
    - Regex patterns matched against entry names
    - Ignore patterns (gitignore-style) and hidden-entry skipping
    - Optional recursion into subdirectories
    """

    def __init__(self, config: Optional[WalkerConfig] = None):
        """
        Initialize the walker.

        Args:
            config: Listing configuration; defaults are used when omitted
        """
        self.config = config or WalkerConfig()
        self._stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {
            'entries_scanned': 0,
            'entries_matched': 0,
            'entries_ignored': 0,
            'directories_traversed': 0,
            'errors': 0
        }

    def list_entries(
        self,
        directory: Union[str, Path],
        kind: EntryKind = EntryKind.FILES,
        extensions: Optional[List[str]] = None,
        patterns: Optional[List[str]] = None,
        recursive: bool = False,
    ) -> List[EntryMatch]:
        """
        List entries of a directory that match the filter.

        Args:
            directory: Directory to list
            kind: Which entry kinds to select
            extensions: Extensions to keep (files only); None or empty keeps all
            patterns: Regex patterns, any of which must match the entry name
            recursive: Whether to descend into subdirectories

        Returns:
            Matching entries ordered by name

        Raises:
            WalkerError: If the directory does not exist or is not a directory
        """
        root = Path(directory).expanduser()
        if not root.exists():
            raise WalkerError(f"Directory does not exist: {root}")
        if not root.is_dir():
            raise WalkerError(f"Path is not a directory: {root}")
        root = root.resolve()

        wanted_extensions = self._normalize_extensions(extensions)
        compiled_patterns = self._compile_patterns(patterns or [])

        matches = list(self._walk(root, root, kind, wanted_extensions, compiled_patterns, recursive))
        logger.debug(f"Listed {len(matches)} matching entries in {root}")
        return matches

    def iter_subdirectories(self, directory: Union[str, Path]) -> Iterator[Path]:
        """Yield the immediate, non-ignored subdirectories of a directory."""
        for entry in self.list_entries(directory, kind=EntryKind.DIRECTORIES):
            yield Path(entry.path)

    def _walk(
        self,
        root: Path,
        current: Path,
        kind: EntryKind,
        extensions: List[str],
        compiled_patterns: List[re.Pattern],
        recursive: bool,
    ) -> Iterator[EntryMatch]:
        """Yield matching entries of one directory, then recurse if asked."""
        self._stats['directories_traversed'] += 1
        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda e: (e.name.casefold(), e.name))
        except OSError as e:
            logger.warning(f"Cannot list directory {current}: {e}")
            self._stats['errors'] += 1
            return

        subdirs = []
        for entry in entries:
            if self._stats['entries_scanned'] >= self.config.max_entries:
                logger.warning(f"Reached maximum entry limit: {self.config.max_entries}")
                return

            entry_path = Path(entry.path)
            relative = entry_path.relative_to(root).as_posix()
            try:
                is_dir = entry.is_dir()
            except OSError:
                is_dir = False

            if self._should_skip(entry.name, relative + ('/' if is_dir else '')):
                self._stats['entries_ignored'] += 1
                continue

            self._stats['entries_scanned'] += 1
            if is_dir:
                subdirs.append(entry_path)

            if not self._kind_matches(kind, is_dir):
                continue
            if not is_dir and extensions and entry_path.suffix.lower() not in extensions:
                continue
            if not self._matches_patterns(entry.name, compiled_patterns):
                continue

            match = self._create_entry_match(entry_path, is_dir)
            if match:
                self._stats['entries_matched'] += 1
                yield match

        if recursive:
            for subdir in subdirs:
                yield from self._walk(root, subdir, kind, extensions, compiled_patterns, recursive)

    def _should_skip(self, name: str, relative: str) -> bool:
        """Check hidden-entry and ignore-pattern rules for an entry."""
        if not self.config.include_hidden and name.startswith('.'):
            return True
        return self.config.should_ignore(relative)

    @staticmethod
    def _kind_matches(kind: EntryKind, is_dir: bool) -> bool:
        if kind == EntryKind.ALL:
            return True
        if kind == EntryKind.DIRECTORIES:
            return is_dir
        return not is_dir

    @staticmethod
    def _normalize_extensions(extensions: Optional[List[str]]) -> List[str]:
        normalized = []
        for ext in extensions or []:
            ext = ext.strip().lower()
            if not ext:
                continue
            normalized.append(ext if ext.startswith('.') else '.' + ext)
        return normalized

    def _compile_patterns(self, patterns: List[str]) -> List[re.Pattern]:
        """
        Compile regex patterns for efficient matching.

        Invalid patterns are logged and dropped.
        """
        compiled = []
        for pattern in patterns:
            try:
                compiled.append(re.compile(pattern, re.IGNORECASE))
            except re.error as e:
                logger.warning(f"Invalid regex pattern '{pattern}': {e}")
                self._stats['errors'] += 1
        return compiled

    @staticmethod
    def _matches_patterns(name: str, compiled_patterns: List[re.Pattern]) -> bool:
        """Check if a name matches any of the compiled patterns."""
        if not compiled_patterns:
            return True
        return any(pattern.search(name) for pattern in compiled_patterns)

    def _create_entry_match(self, entry_path: Path, is_dir: bool) -> Optional[EntryMatch]:
        """
        Create an EntryMatch for a selected entry.

        Returns:
            EntryMatch object or None if the entry cannot be read
        """
        try:
            stat_result = entry_path.stat()
        except OSError as e:
            logger.warning(f"Error reading metadata of {entry_path}: {e}")
            self._stats['errors'] += 1
            return None

        metadata = EntryMetadata(
            size=0 if is_dir else stat_result.st_size,
            modified_time=datetime.fromtimestamp(stat_result.st_mtime),
            extension=None if is_dir else (entry_path.suffix or None),
        )
        return EntryMatch(path=str(entry_path), is_dir=is_dir, metadata=metadata)

    def get_stats(self) -> Dict[str, int]:
        """
        Get statistics about the listing operations.

        Returns:
            Dictionary containing operation statistics
        """
        return self._stats.copy()

    def reset_stats(self) -> None:
        """Reset the statistics counters."""
        self._stats = self._empty_stats()
