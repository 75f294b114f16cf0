"""
Running external executables (choco, winget, PowerShell).

Every call blocks until the process exits. Output is captured as text so
callers can log it or parse it.
"""

import shutil
import subprocess
from typing import List, Optional, Sequence
import logging


logger = logging.getLogger(__name__)


class CommandNotFoundError(Exception):
    """Raised when an executable is not on PATH."""
    pass


class CommandError(Exception):
    """Raised when a command exits with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr or ""
        detail = self.stderr.strip().splitlines()[-1] if self.stderr.strip() else "no error output"
        super().__init__(f"'{self.args_list[0]}' exited with status {returncode}: {detail}")


class CommandRunner:
    """
    Runs external commands synchronously.

    Attributes:
        timeout: Seconds before a command is abandoned (None waits forever)
    """

    POWERSHELL_CANDIDATES = ['pwsh', 'powershell']

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def which(self, name: str) -> Optional[str]:
        """Get the full path of an executable on PATH, or None."""
        return shutil.which(name)

    def run(self, args: Sequence[str], check: bool = True) -> subprocess.CompletedProcess:
        """
        Run a command and wait for it.

        Args:
            args: Executable followed by its arguments
            check: Raise CommandError on a non-zero exit status

        Returns:
            The completed process with captured stdout and stderr

        Raises:
            CommandNotFoundError: If the executable cannot be found
            CommandError: If check is set and the command fails or times out
        """
        args = [str(arg) for arg in args]
        logger.debug(f"Running: {' '.join(args)}")
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise CommandNotFoundError(f"Command not found: {args[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise CommandError(args, -1, f"timed out after {self.timeout} seconds") from e

        if check and result.returncode != 0:
            raise CommandError(args, result.returncode, result.stderr)
        return result

    def find_powershell(self) -> str:
        """
        Get the PowerShell executable, preferring PowerShell 7.

        Raises:
            CommandNotFoundError: If neither pwsh nor powershell is installed
        """
        for candidate in self.POWERSHELL_CANDIDATES:
            if self.which(candidate):
                return candidate
        raise CommandNotFoundError("Neither pwsh nor powershell is available")

    def run_powershell(self, script: str, check: bool = True) -> subprocess.CompletedProcess:
        """Run a PowerShell script block without loading any profile."""
        executable = self.find_powershell()
        return self.run(
            [executable, '-NoProfile', '-ExecutionPolicy', 'Bypass', '-Command', script],
            check=check,
        )


def build_winget_install(package_id: str) -> List[str]:
    """Arguments installing one winget package without prompts."""
    return [
        'winget', 'install', '-e', '--id', package_id,
        '--accept-source-agreements', '--accept-package-agreements',
    ]


def build_chocolatey_script(script_url: str) -> str:
    """PowerShell script that downloads and runs the Chocolatey installer."""
    return (
        "Set-ExecutionPolicy Bypass -Scope Process -Force; "
        "[System.Net.ServicePointManager]::SecurityProtocol = "
        "[System.Net.ServicePointManager]::SecurityProtocol -bor 3072; "
        f"Invoke-Expression ((New-Object System.Net.WebClient).DownloadString('{script_url}'))"
    )


def build_module_install_script(module_name: str) -> str:
    """PowerShell script installing a module from the PowerShell Gallery."""
    return f"Install-Module -Name '{module_name}' -Repository PSGallery -Scope CurrentUser -Force"
