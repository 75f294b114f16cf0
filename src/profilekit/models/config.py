"""
Configuration data models for profilekit.

This module defines the data structures that drive every command: entry
listing and ignore patterns, the sequential renamer, media renaming
heuristics, CBZ packaging, the environment installer, and logging.
"""

from typing import Dict, List, Optional, Any
from pathlib import Path
from enum import Enum
import re
from pydantic import BaseModel, Field, PrivateAttr, field_validator


def _normalize_extensions(values: List[str]) -> List[str]:
    """Lowercase extensions and ensure a leading dot."""
    normalized = []
    for ext in values:
        if not ext or not ext.strip():
            continue
        ext = ext.strip().lower()
        if not ext.startswith('.'):
            ext = '.' + ext
        if ext not in normalized:
            normalized.append(ext)
    return normalized


class LogLevel(Enum):
    """Supported logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class WalkerConfig(BaseModel):
    """
    Configuration for listing directory entries.

    Attributes:
        ignore: Ignore patterns (gitignore-style)
        include_hidden: Whether dot-prefixed entries are listed
        max_entries: Maximum number of entries examined per listing
    """

    ignore: List[str] = Field(
        default_factory=lambda: [
            "desktop.ini",
            "Thumbs.db",
            ".DS_Store",
            ".renumber-*/",
        ],
        description="Ignore patterns (gitignore-style)"
    )
    include_hidden: bool = Field(False, description="Whether dot-prefixed entries are listed")
    max_entries: int = Field(100000, gt=0, description="Maximum number of entries examined per listing")

    _compiled_ignore_patterns: List[Dict[str, Any]] = PrivateAttr(default_factory=list)

    def model_post_init(self, __context) -> None:
        """Normalize and compile ignore patterns."""
        self.ignore = [p.strip() for p in self.ignore if p and p.strip() and not p.strip().startswith('#')]
        self._compile_ignore_patterns()

    def _compile_ignore_patterns(self) -> None:
        """Compile ignore patterns for efficient matching."""
        compiled = []
        for pattern in self.ignore:
            try:
                regex_pattern = gitignore_to_regex(pattern)
                compiled.append({
                    'regex': re.compile(regex_pattern, re.IGNORECASE),
                    'is_negation': pattern.startswith('!'),
                    'original': pattern,
                })
            except re.error as e:
                raise ValueError(f"Invalid ignore pattern '{pattern}': {e}")
        self._compiled_ignore_patterns = compiled

    def should_ignore(self, path: str) -> bool:
        """
        Check if a path should be ignored based on ignore patterns.

        Patterns are processed in order, so a later negation pattern
        (starting with !) can un-ignore a path matched earlier.

        Args:
            path: Path relative to the listed directory; directories end with '/'

        Returns:
            True if path should be ignored, False otherwise
        """
        normalized_path = str(path).replace('\\', '/').lstrip('/')

        ignored = False
        for pattern_info in self._compiled_ignore_patterns:
            if pattern_info['regex'].search(normalized_path):
                ignored = not pattern_info['is_negation']
        return ignored

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return self.model_dump()


def gitignore_to_regex(pattern: str) -> str:
    """
    Convert a gitignore-style pattern to a regex string.

    Supports * and ? wildcards, ** directory wildcards, directory-only
    patterns (trailing /), rooted patterns (leading /) and character classes.

    Args:
        pattern: Gitignore-style pattern

    Returns:
        Regex pattern string
    """
    if not pattern or pattern.isspace():
        return r'(?!.*)'

    if pattern.startswith('!'):
        pattern = pattern[1:]
        if not pattern:
            return r'(?!.*)'

    is_directory_only = pattern.endswith('/')
    if is_directory_only:
        pattern = pattern[:-1]

    is_rooted = pattern.startswith('/')
    if is_rooted:
        pattern = pattern[1:]

    if not pattern:
        return r'(?!.*)'

    if '**' in pattern:
        parts = pattern.split('**')
        regex_parts = []
        for i, part in enumerate(parts):
            if i > 0:
                if part.startswith('/'):
                    # **/ matches zero or more directories
                    regex_parts.append(r'(?:[^/]+/)*')
                    part = part[1:]
                else:
                    regex_parts.append(r'.*')
            if part:
                regex_parts.append(_translate_segment(part))
        body = ''.join(regex_parts)
    else:
        body = _translate_segment(pattern)

    # Directory paths are matched with a trailing slash
    tail = r'/.*$' if is_directory_only else r'(/|$)'
    if is_rooted:
        return f'^{body}{tail}'
    return f'(^|/){body}{tail}'


def _translate_segment(segment: str) -> str:
    """Translate a wildcard segment so that * and ? never cross a slash."""
    parts = []
    i, n = 0, len(segment)
    while i < n:
        ch = segment[i]
        i += 1
        if ch == '*':
            parts.append('[^/]*')
        elif ch == '?':
            parts.append('[^/]')
        elif ch == '[':
            search_from = i + 1 if i < n and segment[i] in '!^' else i
            end = segment.find(']', search_from + 1)
            if end == -1:
                parts.append(r'\[')
                continue
            body = segment[i:end]
            if body.startswith('!'):
                body = '^' + body[1:]
            parts.append('[' + body.replace('\\', '\\\\') + ']')
            i = end + 1
        else:
            parts.append(re.escape(ch))
    return ''.join(parts)


class RenumberConfig(BaseModel):
    """
    Configuration for the sequential renamer.

    Attributes:
        padding: Zero-padding width (None means the width of the last index)
        start: First index assigned
        prefix: Text placed before each index
        extensions: Extensions selected for renumbering (empty selects all)
        staging_prefix: Name prefix of the temporary staging directory
    """

    padding: Optional[int] = Field(None, gt=0, le=32, description="Zero-padding width")
    start: int = Field(1, ge=0, description="First index assigned")
    prefix: str = Field("", description="Text placed before each index")
    extensions: List[str] = Field(default_factory=list, description="Extensions selected for renumbering")
    staging_prefix: str = Field(".renumber-", min_length=1, description="Staging directory name prefix")

    @field_validator('extensions')
    @classmethod
    def validate_extensions(cls, v: List[str]) -> List[str]:
        """Normalize extensions to lowercase with a leading dot."""
        return _normalize_extensions(v)

    @field_validator('prefix')
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        """Reject prefixes that would produce a path instead of a name."""
        if any(sep in v for sep in ('/', '\\')):
            raise ValueError(f"Prefix must not contain path separators: {v}")
        return v

    @field_validator('staging_prefix')
    @classmethod
    def validate_staging_prefix(cls, v: str) -> str:
        """Staging folders must be hidden so later listings skip leftovers."""
        if not v.startswith('.') or len(v) < 2:
            raise ValueError(f"Staging prefix must start with '.' followed by a name: {v}")
        if any(sep in v for sep in ('/', '\\')):
            raise ValueError(f"Staging prefix must not contain path separators: {v}")
        return v

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return self.model_dump()


class MediaConfig(BaseModel):
    """
    Configuration for media renaming heuristics.

    Attributes:
        video_extensions: Extensions treated as video files
        subtitle_extensions: Extensions treated as subtitles of a video
        release_tags: Tokens that end a title (resolution, codec, source)
        use_folder_title: Take series titles from folders (above "Season N", or for untitled files)
        episode_template: Format of episode names
        movie_template: Format of movie names
        folder_template: Format of renamed folders
    """

    video_extensions: List[str] = Field(
        default_factory=lambda: ['.mkv', '.mp4', '.avi', '.m4v', '.mov', '.wmv', '.webm', '.ts'],
        description="Extensions treated as video files"
    )
    subtitle_extensions: List[str] = Field(
        default_factory=lambda: ['.srt', '.ass', '.ssa', '.sub', '.vtt'],
        description="Extensions treated as subtitles"
    )
    release_tags: List[str] = Field(
        default_factory=lambda: [
            '2160p', '1080p', '1080i', '720p', '576p', '480p', '4k', 'uhd',
            'x264', 'x265', 'h264', 'h265', 'hevc', 'avc', 'xvid', 'divx', '10bit',
            'bluray', 'blu-ray', 'bdrip', 'brrip', 'webrip', 'web-dl', 'webdl', 'web',
            'hdtv', 'dvdrip', 'hdrip', 'remux', 'proper', 'repack', 'extended',
            'aac', 'ac3', 'dts', 'ddp5', 'ddp5.1', 'flac', 'multi', 'dual-audio',
        ],
        description="Tokens that end a title"
    )
    use_folder_title: bool = Field(True, description="Take series titles from season or parent folders")
    episode_template: str = Field("{title} - S{season:02d}E{episode:02d}", description="Format of episode names")
    movie_template: str = Field("{title} ({year})", description="Format of movie names")
    folder_template: str = Field("{title} ({year})", description="Format of renamed folders")

    @field_validator('video_extensions', 'subtitle_extensions')
    @classmethod
    def validate_extensions(cls, v: List[str]) -> List[str]:
        """Normalize extensions to lowercase with a leading dot."""
        return _normalize_extensions(v)

    @field_validator('release_tags')
    @classmethod
    def validate_release_tags(cls, v: List[str]) -> List[str]:
        """Compare tags case-insensitively."""
        return [tag.strip().lower() for tag in v if tag and tag.strip()]

    @field_validator('episode_template', 'movie_template', 'folder_template')
    @classmethod
    def validate_template(cls, v: str) -> str:
        """Require a {title} placeholder."""
        if '{title' not in v:
            raise ValueError(f"Template must contain a {{title}} placeholder: {v}")
        return v

    def is_video(self, path: Path) -> bool:
        """Check if a path has a video extension."""
        return path.suffix.lower() in self.video_extensions

    def is_subtitle(self, path: Path) -> bool:
        """Check if a path has a subtitle extension."""
        return path.suffix.lower() in self.subtitle_extensions

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return self.model_dump()


class CBZConfig(BaseModel):
    """
    Configuration for CBZ packaging.

    Attributes:
        image_extensions: Extensions treated as comic pages
        compress: Deflate pages instead of storing them
        write_comic_info: Add a ComicInfo.xml sidecar
        overwrite: Replace an existing archive
        delete_source: Remove the page folder after packing
        language: ISO language code written to ComicInfo.xml
        page_padding: Zero-padding width of page names inside the archive
    """

    image_extensions: List[str] = Field(
        default_factory=lambda: ['.jpg', '.jpeg', '.png', '.webp', '.gif', '.bmp', '.avif'],
        description="Extensions treated as comic pages"
    )
    compress: bool = Field(False, description="Deflate pages instead of storing them")
    write_comic_info: bool = Field(True, description="Add a ComicInfo.xml sidecar")
    overwrite: bool = Field(False, description="Replace an existing archive")
    delete_source: bool = Field(False, description="Remove the page folder after packing")
    language: Optional[str] = Field(None, description="ISO language code")
    page_padding: int = Field(4, gt=0, le=8, description="Zero-padding width of page names")

    @field_validator('image_extensions')
    @classmethod
    def validate_extensions(cls, v: List[str]) -> List[str]:
        """Normalize extensions to lowercase with a leading dot."""
        normalized = _normalize_extensions(v)
        if not normalized:
            raise ValueError("At least one image extension must be specified")
        return normalized

    @field_validator('language')
    @classmethod
    def validate_language(cls, v: Optional[str]) -> Optional[str]:
        """Accept two or three letter ISO codes."""
        if v is None:
            return v
        v = v.strip().lower()
        if not re.fullmatch(r'[a-z]{2,3}', v):
            raise ValueError(f"Invalid language code: {v}")
        return v

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return self.model_dump()


class ProfileFile(BaseModel):
    """
    A profile script fetched from a raw-content URL.

    Attributes:
        name: File name written inside the profile directory
        url: Raw-content URL of the script
        optional: Whether the download is gated by a prompt
    """

    name: str = Field(..., min_length=1, description="File name inside the profile directory")
    url: str = Field(..., min_length=1, description="Raw-content URL of the script")
    optional: bool = Field(False, description="Whether the download is gated by a prompt")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Require a bare file name."""
        if Path(v).name != v:
            raise ValueError(f"Profile file name must not contain directories: {v}")
        return v

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an http(s) URL."""
        if not re.match(r'^https?://', v):
            raise ValueError(f"Profile URL must use http or https: {v}")
        return v


class FontConfig(BaseModel):
    """
    Configuration for the Nerd Font installation.

    Attributes:
        name: Font family archive name
        version: Release version substituted into the URL
        url_template: Download URL with {name} and {version} placeholders
        file_prefix: File name prefix identifying installed font files
        fonts_dir: Directory receiving the font files (None selects the per-user directory)
    """

    name: str = Field("CascadiaCode", min_length=1, description="Font family archive name")
    file_prefix: str = Field("CaskaydiaCove", min_length=1, description="Prefix of installed font files")
    version: str = Field("3.2.1", min_length=1, description="Release version")
    url_template: str = Field(
        "https://github.com/ryanoasis/nerd-fonts/releases/download/v{version}/{name}.zip",
        description="Download URL template"
    )
    fonts_dir: Optional[str] = Field(None, description="Directory receiving the font files")

    def get_url(self) -> str:
        """Expand the download URL for the configured font."""
        return self.url_template.format(name=self.name, version=self.version)

    def get_fonts_dir(self) -> Path:
        """Get the directory that receives font files."""
        if self.fonts_dir:
            return Path(self.fonts_dir).expanduser()
        local_app_data = Path.home() / 'AppData' / 'Local'
        return local_app_data / 'Microsoft' / 'Windows' / 'Fonts'


_RAW_BASE = "https://raw.githubusercontent.com/ChrisTitusTech/powershell-profile/main"


class InstallerConfig(BaseModel):
    """
    Configuration for the environment installer.

    Attributes:
        profile_dir: Directory receiving the profile scripts
        profile_files: Profile scripts to download
        chocolatey_script_url: Chocolatey install script URL
        winget_packages: Winget package identifiers
        powershell_modules: PowerShell Gallery modules to install
        font: Nerd Font settings
        connectivity_url: URL probed to confirm internet access
        timeout_seconds: Network timeout for downloads and probes
        require_admin: Whether missing administrator rights is fatal
    """

    profile_dir: str = Field("~/Documents/PowerShell", description="Directory receiving the profile scripts")
    profile_files: List[ProfileFile] = Field(
        default_factory=lambda: [
            ProfileFile(name="Microsoft.PowerShell_profile.ps1",
                        url=f"{_RAW_BASE}/Microsoft.PowerShell_profile.ps1"),
            ProfileFile(name="functions.ps1", url=f"{_RAW_BASE}/functions.ps1"),
            ProfileFile(name="extras.ps1", url=f"{_RAW_BASE}/extras.ps1", optional=True),
        ],
        description="Profile scripts to download"
    )
    chocolatey_script_url: str = Field(
        "https://community.chocolatey.org/install.ps1",
        description="Chocolatey install script URL"
    )
    winget_packages: List[str] = Field(
        default_factory=lambda: ["Starship.Starship", "ajeetdsouza.zoxide", "eza-community.eza"],
        description="Winget package identifiers"
    )
    powershell_modules: List[str] = Field(
        default_factory=lambda: ["Terminal-Icons"],
        description="PowerShell Gallery modules to install"
    )
    font: FontConfig = Field(default_factory=FontConfig, description="Nerd Font settings")
    connectivity_url: str = Field("https://www.github.com", description="URL probed for internet access")
    timeout_seconds: int = Field(30, gt=0, description="Network timeout in seconds")
    require_admin: bool = Field(True, description="Whether missing administrator rights is fatal")

    @field_validator('profile_files')
    @classmethod
    def validate_profile_files(cls, v: List[ProfileFile]) -> List[ProfileFile]:
        """Reject duplicate target names."""
        names = [pf.name.lower() for pf in v]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate profile file names: {', '.join(duplicates)}")
        return v

    def get_profile_dir(self) -> Path:
        """Get the expanded profile directory."""
        return Path(self.profile_dir).expanduser()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return self.model_dump()


class LoggingConfig(BaseModel):
    """
    Configuration for diagnostic logging.

    Attributes:
        level: Root logging level
        format: Log record format string
    """

    level: LogLevel = Field(LogLevel.INFO, description="Root logging level")
    format: str = Field("%(levelname)s %(name)s: %(message)s", description="Log record format string")

    @field_validator('level', mode='before')
    @classmethod
    def validate_level(cls, v) -> LogLevel:
        """Validate and convert level to enum."""
        if isinstance(v, str):
            try:
                return LogLevel(v.upper())
            except ValueError:
                raise ValueError(f"Invalid log level: {v}")
        return v

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        data = self.model_dump()
        data['level'] = self.level.value
        return data


class ToolkitConfig(BaseModel):
    """
    Main configuration class for profilekit.

    Attributes:
        walker: Entry listing settings
        renumber: Sequential renamer settings
        media: Media renaming settings
        cbz: CBZ packaging settings
        installer: Environment installer settings
        logging: Diagnostic logging settings
    """

    walker: WalkerConfig = Field(default_factory=WalkerConfig, description="Entry listing settings")
    renumber: RenumberConfig = Field(default_factory=RenumberConfig, description="Sequential renamer settings")
    media: MediaConfig = Field(default_factory=MediaConfig, description="Media renaming settings")
    cbz: CBZConfig = Field(default_factory=CBZConfig, description="CBZ packaging settings")
    installer: InstallerConfig = Field(default_factory=InstallerConfig, description="Installer settings")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging settings")

    def validate_configuration(self) -> List[str]:
        """Validate the complete configuration and return any warnings."""
        warnings = []

        overlap = set(self.media.video_extensions) & set(self.media.subtitle_extensions)
        if overlap:
            warnings.append(f"Extensions listed as both video and subtitle: {', '.join(sorted(overlap))}")

        if self.cbz.delete_source:
            warnings.append("CBZ delete_source is enabled - page folders are removed after packing")

        if not self.installer.require_admin:
            warnings.append("Installer administrator check is disabled")

        insecure = [pf.name for pf in self.installer.profile_files if pf.url.startswith('http://')]
        if insecure:
            warnings.append(f"Profile files downloaded over plain http: {', '.join(insecure)}")

        if not self.installer.profile_files:
            warnings.append("No profile files configured for download")

        return warnings

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary representation."""
        return {
            'walker': self.walker.to_dict(),
            'renumber': self.renumber.to_dict(),
            'media': self.media.to_dict(),
            'cbz': self.cbz.to_dict(),
            'installer': self.installer.to_dict(),
            'logging': self.logging.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ToolkitConfig':
        """Create configuration from dictionary representation."""
        return cls.model_validate(data)

    def __str__(self) -> str:
        """String representation of the configuration."""
        parts = [f"Ignore patterns: {len(self.walker.ignore)}"]
        parts.append(f"Renumber start: {self.renumber.start}")
        parts.append(f"Profile files: {len(self.installer.profile_files)}")
        parts.append(f"Log level: {self.logging.level.value}")
        return " | ".join(parts)
