"""
Media file and folder renaming heuristics.

Release names such as ``The.Office.S02E05.720p.WEB-DL.x264.mkv`` or
``[Group] Show Name - 05 [1080p].mkv`` are parsed into a title, a year and
an optional season/episode, and rebuilt from templates:

    The Office - S02E05.mkv
    Show Name - S01E05.mkv
    Blade Runner (1982).mkv

Subtitles that share a video's stem follow the video's new name.
"""

import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union
import logging

from ..models.config import MediaConfig
from ..models.operations import (
    EntryKind,
    OperationReport,
    OperationStatus,
    RenameOperation,
    RenamePlan,
)
from .fs_walker import EntryWalker


logger = logging.getLogger(__name__)

_INVALID_CHARS_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_YEAR_RE = re.compile(r'^[(\[]?((?:19|20)\d{2})[)\]]?$')
_SEASON_FOLDER_RE = re.compile(r'^(?:season|series|s)\s*\d+$', re.IGNORECASE)
_SEASON_TOKEN_RE = re.compile(r'^(?:S\d{1,2}|Season)$', re.IGNORECASE)

_EPISODE_PATTERNS = [
    # S01E02, s1e2, S01 E02
    (re.compile(r'\bS(\d{1,2})\s*E(\d{1,3})\b', re.IGNORECASE), True),
    # 1x02
    (re.compile(r'\b(\d{1,2})x(\d{2,3})\b', re.IGNORECASE), True),
    # Episode 2, Ep 02, Ep.02
    (re.compile(r'\b(?:Episode|Ep)\s*(\d{1,3})\b', re.IGNORECASE), False),
    # Show Name - 05
    (re.compile(r'\s-\s*(\d{1,3})(?=\s|$)'), False),
]


@dataclass
class MediaInfo:
    """
    Parsed components of a media name.

    Attributes:
        title: Cleaned title
        year: Release year, if present
        season: Season number (episodes only)
        episode: Episode number (episodes only)
    """
    title: str
    year: Optional[int] = None
    season: Optional[int] = None
    episode: Optional[int] = None

    @property
    def is_episode(self) -> bool:
        return self.episode is not None


def sanitize_name(name: str) -> str:
    """Remove characters that are invalid in Windows file names."""
    name = _INVALID_CHARS_RE.sub('', name)
    name = re.sub(r'\s+', ' ', name)
    return name.strip().rstrip('. ')


def _normalize_separators(raw: str) -> str:
    text = re.sub(r'\[[^\]]*\]', ' ', raw)
    text = re.sub(r'\{[^}]*\}', ' ', text)
    # Dots between words are separators; keep dots in abbreviations like "Mr."
    text = re.sub(r'(?<=\w)\.(?=\w)', ' ', text)
    text = text.replace('_', ' ')
    return re.sub(r'\s+', ' ', text).strip()


def _smart_title(title: str) -> str:
    """Capitalize words that are entirely lower case."""
    words = []
    for word in title.split(' '):
        words.append(word[:1].upper() + word[1:] if word.islower() else word)
    return ' '.join(words)


def clean_title(raw: str, release_tags: Optional[List[str]] = None) -> Tuple[str, Optional[int]]:
    """
    Clean a release name into a title and an optional year.

    Bracketed groups are dropped, dots and underscores become spaces, and the
    title ends at the first release tag or year.

    Args:
        raw: Raw name without extension
        release_tags: Lowercase tokens that end a title

    Returns:
        (title, year)
    """
    tags = set(release_tags if release_tags is not None else MediaConfig().release_tags)
    text = _normalize_separators(raw)

    title_tokens: List[str] = []
    year = None
    for token in text.split(' '):
        year_match = _YEAR_RE.match(token)
        if year_match and title_tokens:
            year = int(year_match.group(1))
            break
        if token.startswith('(') or token.endswith(')'):
            # Parenthesised groups other than a year are noise
            continue
        if token.strip('-').lower() in tags:
            break
        if _SEASON_TOKEN_RE.match(token) and title_tokens:
            break
        title_tokens.append(token)

    title = ' '.join(title_tokens).strip(' -')
    title = re.sub(r'\(\s*\)', '', title)
    return _smart_title(sanitize_name(title)), year


def parse_media_name(name: str, release_tags: Optional[List[str]] = None) -> MediaInfo:
    """
    Parse a media name (without extension) into its components.

    Args:
        name: File or folder name without extension
        release_tags: Lowercase tokens that end a title

    Returns:
        MediaInfo; season and episode are None for movies
    """
    text = _normalize_separators(name)

    for pattern, has_season in _EPISODE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        if has_season:
            season, episode = int(match.group(1)), int(match.group(2))
        else:
            season, episode = 1, int(match.group(1))
        title, year = clean_title(text[:match.start()], release_tags)
        if year is None:
            _, year = clean_title(text, release_tags)
        return MediaInfo(title=title, year=year, season=season, episode=episode)

    title, year = clean_title(text, release_tags)
    return MediaInfo(title=title, year=year)


def build_episode_name(info: MediaInfo, template: str, suffix: str = "") -> str:
    """Build an episode file name from a template such as '{title} - S{season:02d}E{episode:02d}'."""
    name = template.format(title=info.title, year=info.year or '', season=info.season or 1, episode=info.episode)
    return sanitize_name(name) + suffix


def build_movie_name(info: MediaInfo, template: str, suffix: str = "") -> str:
    """Build a movie file name; the year part is dropped when no year is known."""
    if info.year is None:
        return sanitize_name(info.title) + suffix
    return sanitize_name(template.format(title=info.title, year=info.year)) + suffix


def build_folder_name(info: MediaInfo, template: str) -> str:
    """Build a folder name; the year part is dropped when no year is known."""
    return build_movie_name(info, template)


def _folder_title(path: Path, info: MediaInfo, release_tags: List[str]) -> str:
    """
    Series title taken from the folders above an episode.

    The parent folder is used only when it is a season folder ('Season 1'),
    in which case the series title comes from the folder above it, or when
    the file name itself carries no title.
    """
    folder = path.parent
    if _SEASON_FOLDER_RE.match(folder.name):
        folder = folder.parent
    elif info.title:
        return ""
    return parse_media_name(folder.name, release_tags).title


def plan_media_renames(
    directory: Union[str, Path],
    config: Optional[MediaConfig] = None,
    walker: Optional[EntryWalker] = None,
    recursive: bool = False,
    rename_folder: bool = False,
) -> RenamePlan:
    """
    Plan renames for the video files of a directory and their subtitles.

    Args:
        directory: Directory containing the media files
        config: Media renaming settings
        walker: Entry walker used for listing
        recursive: Include media in subdirectories
        rename_folder: Also rename the directory itself from its parsed title

    Returns:
        RenamePlan; entries that cannot be renamed are recorded as skipped
    """
    config = config or MediaConfig()
    walker = walker or EntryWalker()
    root = Path(directory).expanduser().resolve()

    videos = walker.list_entries(root, kind=EntryKind.FILES, extensions=config.video_extensions, recursive=recursive)
    subtitles = walker.list_entries(root, kind=EntryKind.FILES, extensions=config.subtitle_extensions,
                                    recursive=recursive)

    operations: List[RenameOperation] = []
    claimed: Dict[str, RenameOperation] = {}
    planned_sources = set()

    for video in videos:
        source = Path(video.path)
        info = parse_media_name(source.stem, config.release_tags)

        if info.is_episode and config.use_folder_title:
            folder_title = _folder_title(source, info, config.release_tags)
            if folder_title:
                info.title = folder_title

        if not info.title:
            op = RenameOperation(source=str(source), target=str(source))
            op.mark(OperationStatus.SKIPPED, "no title found")
            operations.append(op)
            continue

        if info.is_episode:
            new_stem = build_episode_name(info, config.episode_template)
        else:
            new_stem = build_movie_name(info, config.movie_template)

        video_op = _add_operation(operations, claimed, source, source.with_name(new_stem + source.suffix))
        planned_sources.add(str(source))
        # Subtitles move only together with their video
        if not (video_op.status == OperationStatus.PENDING or video_op.is_noop()):
            continue

        for subtitle in subtitles:
            sub_path = Path(subtitle.path)
            if sub_path.parent != source.parent or not sub_path.name.startswith(source.stem + '.'):
                continue
            if str(sub_path) in planned_sources:
                continue
            tail = sub_path.name[len(source.stem):]
            _add_operation(operations, claimed, sub_path, sub_path.with_name(new_stem + tail))
            planned_sources.add(str(sub_path))

    if rename_folder:
        folder_info = parse_media_name(root.name, config.release_tags)
        if folder_info.title:
            new_name = build_folder_name(folder_info, config.folder_template)
            _add_operation(operations, claimed, root, root.with_name(new_name))

    logger.debug(f"Planned {len(operations)} media rename operation(s) in {root}")
    return RenamePlan(directory=str(root), operations=operations)


def _add_operation(
    operations: List[RenameOperation],
    claimed: Dict[str, RenameOperation],
    source: Path,
    target: Path,
) -> RenameOperation:
    """Append an operation, marking no-ops, duplicates and existing targets as skipped."""
    op = RenameOperation(source=str(source), target=str(target))
    key = str(target).casefold()

    if op.is_noop():
        op.mark(OperationStatus.SKIPPED, "already named")
    elif key in claimed:
        op.mark(OperationStatus.SKIPPED, f"duplicate target of {claimed[key].source_name}")
    elif os.path.lexists(target) and str(source).casefold() != key:
        op.mark(OperationStatus.SKIPPED, "target exists")
    else:
        claimed[key] = op

    operations.append(op)
    return op


def apply_plan(plan: RenamePlan) -> OperationReport:
    """
    Apply the pending operations of a plan one by one.

    Failures are recorded on the operation and do not stop the batch.

    Returns:
        OperationReport with the final status of every operation
    """
    started = time.time()
    report = OperationReport(operations=plan.operations)

    for op in plan.pending():
        target = Path(op.target)
        # Case-only renames refer to the same file on case-insensitive filesystems
        if os.path.lexists(target) and str(target).casefold() != op.source.casefold():
            op.mark(OperationStatus.SKIPPED, "target exists")
            continue
        try:
            os.rename(op.source, target)
        except OSError as e:
            logger.warning(f"Could not rename {op.source_name}: {e}")
            op.mark(OperationStatus.FAILED, str(e))
            report.add_error(f"{op.source}: {e}")
            continue
        op.mark(OperationStatus.DONE)
        logger.info(f"Renamed {op.source_name} -> {op.target_name}")

    report.execution_time = time.time() - started
    return report
