"""
Environment bootstrap.

The installer runs a fixed sequence of steps:

1. administrator check, internet check, profile directory creation;
   a failure here is fatal and stops the run (exit code 1);
2. profile script downloads with ``.old`` backups, the optional script
   gated by a Y/N prompt;
3. Chocolatey, Winget packages, PowerShell modules and the Nerd Font.

A failure in any step of the second and third group is reported as a
warning and the run continues. Nothing is retried.
"""

import io
import os
import zipfile
from pathlib import Path
from typing import Callable, List, Optional
import logging

import requests

try:
    import winreg
except ImportError:
    # Only available on Windows
    winreg = None

from ..models.config import FontConfig, InstallerConfig
from ..models.operations import InstallReport, StepStatus
from .command_runner import (
    CommandError,
    CommandNotFoundError,
    CommandRunner,
    build_chocolatey_script,
    build_module_install_script,
    build_winget_install,
)
from .profile_update import DownloadError, ProfileUpdater, UpdateStatus


logger = logging.getLogger(__name__)

FONT_EXTENSIONS = ('.ttf', '.otf')
FONTS_REGISTRY_KEY = r"Software\Microsoft\Windows NT\CurrentVersion\Fonts"


def is_admin() -> bool:
    """Check whether the current process has administrator (root) rights."""
    if os.name == 'nt':
        import ctypes
        try:
            return bool(ctypes.windll.shell32.IsUserAnAdmin())
        except (AttributeError, OSError):
            return False
    return os.geteuid() == 0


class FontInstaller:
    """
    Installs a Nerd Font archive into a fonts directory.

    Attributes:
        config: Font settings
        updater: Downloader used for the archive
    """

    def __init__(self, config: FontConfig, updater: ProfileUpdater):
        self.config = config
        self.updater = updater

    def installed_files(self) -> List[Path]:
        """Font files of the configured family already present."""
        fonts_dir = self.config.get_fonts_dir()
        if not fonts_dir.is_dir():
            return []
        prefix = self.config.file_prefix.casefold()
        return [
            path for path in fonts_dir.iterdir()
            if path.suffix.lower() in FONT_EXTENSIONS and path.name.casefold().startswith(prefix)
        ]

    def is_installed(self) -> bool:
        return bool(self.installed_files())

    def install(self) -> List[Path]:
        """
        Download the archive and extract its font files.

        Returns:
            Paths of the font files written

        Raises:
            DownloadError: If the archive cannot be downloaded
            zipfile.BadZipFile: If the archive is corrupt
            OSError: If the fonts directory cannot be written
        """
        url = self.config.get_url()
        logger.info(f"Downloading font archive {url}")
        archive = self.updater.fetch(url)

        fonts_dir = self.config.get_fonts_dir()
        fonts_dir.mkdir(parents=True, exist_ok=True)

        written = []
        with zipfile.ZipFile(io.BytesIO(archive)) as zf:
            for member in zf.infolist():
                name = Path(member.filename).name
                if member.is_dir() or Path(name).suffix.lower() not in FONT_EXTENSIONS:
                    continue
                target = fonts_dir / name
                if target.exists():
                    continue
                target.write_bytes(zf.read(member))
                written.append(target)

        for font_file in written:
            self._register(font_file)

        logger.info(f"Installed {len(written)} font file(s) into {fonts_dir}")
        return written

    def _register(self, font_file: Path) -> None:
        """Register a per-user font on Windows; other platforms need no registration."""
        if winreg is None:
            return
        kind = "TrueType" if font_file.suffix.lower() == '.ttf' else "OpenType"
        with winreg.CreateKey(winreg.HKEY_CURRENT_USER, FONTS_REGISTRY_KEY) as key:
            winreg.SetValueEx(key, f"{font_file.stem} ({kind})", 0, winreg.REG_SZ, str(font_file))


class EnvironmentInstaller:
    """
    Bootstraps the shell environment.

    Attributes:
        config: Installer settings
        runner: Runs package managers and PowerShell
        updater: Downloads profile scripts and the font archive
        prompt: Function asking the user a question (input by default)
        assume_yes: Answer yes to every prompt
    """

    def __init__(
        self,
        config: Optional[InstallerConfig] = None,
        runner: Optional[CommandRunner] = None,
        updater: Optional[ProfileUpdater] = None,
        prompt: Callable[[str], str] = input,
        assume_yes: bool = False,
        admin_check: Callable[[], bool] = is_admin,
    ):
        self.config = config or InstallerConfig()
        self.runner = runner or CommandRunner()
        self.updater = updater or ProfileUpdater(timeout=self.config.timeout_seconds)
        self.prompt = prompt
        self.assume_yes = assume_yes
        self.admin_check = admin_check
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def run(self) -> InstallReport:
        """
        Run every step in order.

        Returns:
            InstallReport; its exit_code is 1 when a fatal step failed
        """
        report = InstallReport()

        for fatal_step in (self._check_admin, self._check_connectivity, self._ensure_profile_dir):
            fatal_step(report)
            if report.has_fatal:
                self.logger.error(str(report.steps[-1]))
                return report

        self._download_profiles(report)
        self._install_chocolatey(report)
        self._install_winget_packages(report)
        self._install_modules(report)
        self._install_font(report)

        for warning in report.warnings:
            self.logger.warning(str(warning))
        return report

    def confirm(self, question: str) -> bool:
        """Ask a Y/N question; anything but y/yes means no."""
        if self.assume_yes:
            return True
        try:
            answer = self.prompt(f"{question} [y/N] ")
        except EOFError:
            return False
        return answer.strip().lower() in ('y', 'yes')

    def _check_admin(self, report: InstallReport) -> None:
        if not self.config.require_admin:
            report.add("admin", StepStatus.SKIPPED, "administrator check disabled")
        elif self.admin_check():
            report.add("admin", StepStatus.OK)
        else:
            report.add("admin", StepStatus.FATAL, "run this command as administrator")

    def _check_connectivity(self, report: InstallReport) -> None:
        url = self.config.connectivity_url
        try:
            self.updater.session.head(url, timeout=self.config.timeout_seconds, allow_redirects=True)
        except requests.RequestException as e:
            report.add("internet", StepStatus.FATAL, f"cannot reach {url}: {e}")
            return
        report.add("internet", StepStatus.OK)

    def _ensure_profile_dir(self, report: InstallReport) -> None:
        profile_dir = self.config.get_profile_dir()
        try:
            profile_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            report.add("profile-dir", StepStatus.FATAL, f"cannot create {profile_dir}: {e}")
            return
        report.add("profile-dir", StepStatus.OK, str(profile_dir))

    def _download_profiles(self, report: InstallReport) -> None:
        profile_dir = self.config.get_profile_dir()
        for profile_file in self.config.profile_files:
            step = f"profile:{profile_file.name}"
            if profile_file.optional and not self.confirm(f"Download optional {profile_file.name}?"):
                report.add(step, StepStatus.SKIPPED, "declined")
                continue

            result = self.updater.update_file(profile_file.url, profile_dir / profile_file.name)
            if result.status == UpdateStatus.FAILED:
                report.add(step, StepStatus.WARNING, result.error or "download failed")
                continue

            message = result.status.value
            if result.backup_path:
                message += f", previous version saved as {result.backup_path.name}"
            report.add(step, StepStatus.OK, message)

    def _install_chocolatey(self, report: InstallReport) -> None:
        if self.runner.which('choco'):
            report.add("chocolatey", StepStatus.SKIPPED, "already installed")
            return
        try:
            self.runner.run_powershell(build_chocolatey_script(self.config.chocolatey_script_url))
        except (CommandError, CommandNotFoundError) as e:
            report.add("chocolatey", StepStatus.WARNING, str(e))
            return
        report.add("chocolatey", StepStatus.OK)

    def _install_winget_packages(self, report: InstallReport) -> None:
        if not self.config.winget_packages:
            return
        if not self.runner.which('winget'):
            report.add("winget", StepStatus.WARNING, "winget is not available")
            return
        for package_id in self.config.winget_packages:
            step = f"winget:{package_id}"
            try:
                self.runner.run(build_winget_install(package_id))
            except (CommandError, CommandNotFoundError) as e:
                report.add(step, StepStatus.WARNING, str(e))
                continue
            report.add(step, StepStatus.OK)

    def _install_modules(self, report: InstallReport) -> None:
        for module_name in self.config.powershell_modules:
            step = f"module:{module_name}"
            try:
                self.runner.run_powershell(build_module_install_script(module_name))
            except (CommandError, CommandNotFoundError) as e:
                report.add(step, StepStatus.WARNING, str(e))
                continue
            report.add(step, StepStatus.OK)

    def _install_font(self, report: InstallReport) -> None:
        font_installer = FontInstaller(self.config.font, self.updater)
        step = f"font:{self.config.font.name}"
        if font_installer.is_installed():
            report.add(step, StepStatus.SKIPPED, "already installed")
            return
        try:
            written = font_installer.install()
        except (DownloadError, zipfile.BadZipFile, OSError) as e:
            report.add(step, StepStatus.WARNING, str(e))
            return
        report.add(step, StepStatus.OK, f"{len(written)} file(s)")
