"""
Profile script updates by hash comparison.

Each profile script is downloaded from its raw-content URL and compared with
the local copy by SHA-256. The local file is only rewritten when the content
differs; the previous version is kept next to it with an ``.old`` suffix.
"""

import hashlib
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union
import logging

import requests

from ..models.config import ProfileFile


logger = logging.getLogger(__name__)


class DownloadError(Exception):
    """Raised when a remote file cannot be downloaded."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        code = status_code if status_code is not None else "no response"
        super().__init__(f"Download failed for {url} ({code}): {message}")


class UpdateStatus(Enum):
    """Outcome of updating one file."""
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass
class UpdateResult:
    """
    Result of updating one profile file.

    Attributes:
        target: Local file path
        status: Update outcome
        old_hash: SHA-256 of the previous local content
        new_hash: SHA-256 of the downloaded content
        backup_path: Where the previous version was saved
        error: Failure message, if any
    """
    target: Path
    status: UpdateStatus
    old_hash: Optional[str] = None
    new_hash: Optional[str] = None
    backup_path: Optional[Path] = None
    error: Optional[str] = None

    def __str__(self) -> str:
        text = f"{self.target.name}: {self.status.value}"
        if self.error:
            text += f" ({self.error})"
        return text


def content_sha256(content: bytes) -> str:
    """Hex SHA-256 digest of a byte string."""
    return hashlib.sha256(content).hexdigest()


def file_sha256(path: Union[str, Path], chunk_size: int = 65536) -> str:
    """Hex SHA-256 digest of a file, read in chunks."""
    digest = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(chunk_size), b''):
            digest.update(chunk)
    return digest.hexdigest()


def backup_path_for(target: Path) -> Path:
    """Backup location of a file: 'profile.ps1' -> 'profile.ps1.old'."""
    return target.with_name(target.name + ".old")


class ProfileUpdater:
    """
    Downloads profile scripts and replaces local copies that differ.

    Attributes:
        session: HTTP session used for downloads
        timeout: Request timeout in seconds
    """

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 30.0):
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch(self, url: str) -> bytes:
        """
        Download a file into memory.

        Raises:
            DownloadError: On connection failure or a non-2xx response
        """
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise DownloadError(url, str(e)) from e

        if response.status_code // 100 != 2:
            raise DownloadError(url, response.reason or "unexpected status", response.status_code)
        return response.content

    def update_file(self, url: str, target: Union[str, Path], backup: bool = True) -> UpdateResult:
        """
        Bring one local file up to date with its remote copy.

        Args:
            url: Raw-content URL
            target: Local file path
            backup: Keep the previous version as '<name>.old'

        Returns:
            UpdateResult; download and write failures are reported as FAILED
        """
        target = Path(target)
        try:
            content = self.fetch(url)
        except DownloadError as e:
            logger.warning(str(e))
            return UpdateResult(target=target, status=UpdateStatus.FAILED, error=str(e))

        new_hash = content_sha256(content)
        try:
            old_hash = file_sha256(target) if target.is_file() else None
        except OSError as e:
            logger.warning(f"Cannot read {target}: {e}")
            return UpdateResult(target=target, status=UpdateStatus.FAILED, new_hash=new_hash, error=str(e))

        if old_hash == new_hash:
            logger.info(f"{target.name} is up to date")
            return UpdateResult(target=target, status=UpdateStatus.UNCHANGED, old_hash=old_hash, new_hash=new_hash)

        backup_file = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if old_hash is not None and backup:
                backup_file = backup_path_for(target)
                shutil.copy2(target, backup_file)
                logger.debug(f"Saved previous {target.name} to {backup_file.name}")
            target.write_bytes(content)
        except OSError as e:
            logger.warning(f"Cannot write {target}: {e}")
            return UpdateResult(target=target, status=UpdateStatus.FAILED, old_hash=old_hash,
                                new_hash=new_hash, backup_path=backup_file, error=str(e))

        status = UpdateStatus.CREATED if old_hash is None else UpdateStatus.UPDATED
        logger.info(f"{target.name} {status.value}")
        return UpdateResult(target=target, status=status, old_hash=old_hash, new_hash=new_hash,
                            backup_path=backup_file)

    def update_profiles(
        self,
        profile_files: List[ProfileFile],
        profile_dir: Union[str, Path],
        include_optional: bool = True,
    ) -> List[UpdateResult]:
        """
        Update every configured profile file; one failure does not stop the others.

        Args:
            profile_files: Files to update
            profile_dir: Directory holding the profile scripts
            include_optional: Whether optional files are updated too

        Returns:
            One result per processed file
        """
        profile_dir = Path(profile_dir).expanduser()
        results = []
        for profile_file in profile_files:
            if profile_file.optional and not include_optional:
                continue
            results.append(self.update_file(profile_file.url, profile_dir / profile_file.name))
        return results
