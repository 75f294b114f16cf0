"""profilekit CLI entry points.

This module maps argparse subcommands onto the library functions in
profilekit.tools. Every handler returns a process exit code.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from .config.parser import ConfigParser, ConfigurationError, create_config_template, load_config
from .models.config import ToolkitConfig
from .models.operations import EntryKind
from .tools.cbz import CBZError, pack_folder, pack_tree
from .tools.fs_walker import EntryWalker, WalkerError
from .tools.installer import EnvironmentInstaller
from .tools.media_rename import apply_plan, plan_media_renames
from .tools.profile_update import ProfileUpdater, UpdateStatus
from .tools.renumber import RenumberError, apply_renumber, plan_renumber


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="profilekit", description="Shell environment utilities")
    parser.add_argument("--config", help="Configuration file (default: discovered .profilekit.yaml)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_renumber_command(subparsers)
    _add_rename_media_command(subparsers)
    _add_cbz_command(subparsers)
    _add_update_profile_command(subparsers)
    _add_install_command(subparsers)
    _add_config_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the profilekit CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "config":
        _configure_logging(ToolkitConfig(), args.verbose)
        return _run_config_command(args)

    try:
        config = load_config(args.config).config
    except ConfigurationError as e:
        _configure_logging(ToolkitConfig(), args.verbose)
        logger.error(str(e))
        return 1
    _configure_logging(config, args.verbose)

    handlers = {
        "renumber": _run_renumber_command,
        "rename-media": _run_rename_media_command,
        "cbz": _run_cbz_command,
        "update-profile": _run_update_profile_command,
        "install": _run_install_command,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.error(f"Unsupported command: {args.command}")
        return 2

    try:
        return handler(config, args)
    except (WalkerError, RenumberError, CBZError) as e:
        logger.error(str(e))
        return 1


def _configure_logging(config: ToolkitConfig, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.logging.level.value)
    logging.basicConfig(level=level, format=config.logging.format, force=True)


def _add_renumber_command(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("renumber", help="Rename entries to zero-padded sequential numbers")
    parser.add_argument("directory", help="Directory whose entries are renumbered")
    parser.add_argument("--dirs", action="store_true", help="Renumber folders instead of files")
    parser.add_argument("--ext", nargs="+", help="Only renumber files with these extensions")
    parser.add_argument("--pattern", help="Only renumber entries whose name matches this regex")
    parser.add_argument("--start", type=int, help="First index")
    parser.add_argument("--padding", type=int, help="Zero-padding width")
    parser.add_argument("--prefix", help="Text placed before each index")
    parser.add_argument("--dry-run", action="store_true", help="Show the plan without renaming")


def _add_rename_media_command(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("rename-media", help="Clean up video and subtitle names")
    parser.add_argument("directory", help="Directory containing the media files")
    parser.add_argument("--recursive", "-r", action="store_true", help="Include subdirectories")
    parser.add_argument("--rename-folder", action="store_true", help="Also rename the directory itself")
    parser.add_argument("--dry-run", action="store_true", help="Show the plan without renaming")


def _add_cbz_command(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("cbz", help="Pack page folders into CBZ archives")
    parser.add_argument("folder", help="Page folder, or with --all a folder of page folders")
    parser.add_argument("--all", action="store_true", help="Pack every subfolder of FOLDER")
    parser.add_argument("--output", "-o", help="Archive path (single folder only)")
    parser.add_argument("--series", help="Series name written to ComicInfo.xml")
    parser.add_argument("--overwrite", action="store_true", help="Replace existing archives")
    parser.add_argument("--delete-source", action="store_true", help="Remove page folders after packing")
    parser.add_argument("--compress", action="store_true", help="Deflate pages instead of storing them")


def _add_update_profile_command(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("update-profile", help="Update profile scripts whose content changed")
    parser.add_argument("--dir", help="Profile directory (default from configuration)")
    parser.add_argument("--skip-optional", action="store_true", help="Leave optional profile scripts alone")


def _add_install_command(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("install", help="Bootstrap the shell environment")
    parser.add_argument("--yes", "-y", action="store_true", help="Answer yes to every prompt")
    parser.add_argument("--skip-admin-check", action="store_true", help="Do not require administrator rights")


def _add_config_command(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("config", help="Create, validate or show configuration")
    parser.add_argument("action", choices=["init", "validate", "show"], help="Configuration action")
    parser.add_argument("path", nargs="?", help="Configuration file path")


def _run_renumber_command(config: ToolkitConfig, args: argparse.Namespace) -> int:
    """Handle renumber command.

    Args:
        config: Loaded configuration.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    plan = plan_renumber(
        args.directory,
        config=config.renumber,
        walker=EntryWalker(config.walker),
        kind=EntryKind.DIRECTORIES if args.dirs else EntryKind.FILES,
        extensions=args.ext,
        pattern=args.pattern,
        start=args.start,
        padding=args.padding,
        prefix=args.prefix,
    )
    print(plan)
    if args.dry_run:
        return 0
    report = apply_renumber(plan, staging_prefix=config.renumber.staging_prefix)
    print(report)
    return 0


def _run_rename_media_command(config: ToolkitConfig, args: argparse.Namespace) -> int:
    """Handle rename-media command.

    Args:
        config: Loaded configuration.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    plan = plan_media_renames(
        args.directory,
        config=config.media,
        walker=EntryWalker(config.walker),
        recursive=args.recursive,
        rename_folder=args.rename_folder,
    )
    print(plan)
    if args.dry_run:
        return 0
    report = apply_plan(plan)
    print(report)
    return 1 if report.has_errors() else 0


def _run_cbz_command(config: ToolkitConfig, args: argparse.Namespace) -> int:
    """Handle cbz command.

    Args:
        config: Loaded configuration.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    overrides = {}
    if args.overwrite:
        overrides["overwrite"] = True
    if args.delete_source:
        overrides["delete_source"] = True
    if args.compress:
        overrides["compress"] = True
    cbz_config = config.cbz.model_copy(update=overrides)
    walker = EntryWalker(config.walker)

    if args.all:
        if args.output:
            logger.error("--output cannot be combined with --all")
            return 1
        report = pack_tree(args.folder, config=cbz_config, series=args.series, walker=walker)
        for result in report.results:
            print(f"{result.source.name}: {result.archive.name if result.ok else result.error}")
            if result.cleanup_error:
                print(f"{result.source.name}: source kept ({result.cleanup_error})")
        print(report)
        return 1 if report.failed else 0

    result = pack_folder(args.folder, output=args.output, config=cbz_config, series=args.series, walker=walker)
    print(f"{result.archive} ({result.page_count} pages)")
    if result.cleanup_error:
        print(f"{result.source.name}: source kept ({result.cleanup_error})")
    return 0


def _run_update_profile_command(config: ToolkitConfig, args: argparse.Namespace) -> int:
    """Handle update-profile command.

    Args:
        config: Loaded configuration.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    installer_config = config.installer
    profile_dir = Path(args.dir).expanduser() if args.dir else installer_config.get_profile_dir()
    updater = ProfileUpdater(timeout=installer_config.timeout_seconds)
    results = updater.update_profiles(
        installer_config.profile_files,
        profile_dir,
        include_optional=not args.skip_optional,
    )
    for result in results:
        print(result)
    return 1 if any(r.status == UpdateStatus.FAILED for r in results) else 0


def _run_install_command(config: ToolkitConfig, args: argparse.Namespace) -> int:
    """Handle install command.

    Args:
        config: Loaded configuration.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    installer_config = config.installer
    if args.skip_admin_check:
        installer_config = installer_config.model_copy(update={"require_admin": False})
    installer = EnvironmentInstaller(installer_config, assume_yes=args.yes)
    report = installer.run()
    print(report)
    return report.exit_code


def _run_config_command(args: argparse.Namespace) -> int:
    """Handle config command.

    Args:
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    parser = ConfigParser()
    if args.action == "init":
        target = Path(args.path or ".profilekit.yaml")
        if target.exists():
            logger.error(f"Refusing to overwrite existing file: {target}")
            return 1
        try:
            create_config_template(target)
        except ConfigurationError as e:
            logger.error(str(e))
            return 1
        print(f"Wrote configuration template to {target}")
        return 0

    if args.action == "validate":
        if not args.path:
            logger.error("config validate requires a path")
            return 1
        errors = parser.validate_config_file(args.path)
        for error in errors:
            print(error)
        if not errors:
            print(f"{args.path} is valid")
        return 1 if errors else 0

    try:
        result = parser.load_config(args.path)
    except ConfigurationError as e:
        logger.error(str(e))
        return 1
    print(f"# Loaded from {result.config_path or 'defaults'}")
    for warning in result.warnings:
        print(f"# warning: {warning}")
    print(parser.to_yaml(result.config))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
