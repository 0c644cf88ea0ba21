"""Command-line interface for azsync.

Two commands share one flow:

    azsync dotenv   -- sync dotenv variables with Key Vault secrets
    azsync file     -- sync local files with blobs in a storage container

1. Plan: run the engine as a dry run and print the decided actions.
2. Stop with status 0 if nothing needs doing, or with status 1 under
   ``--check-only`` if something does.
3. Ask for confirmation (unless ``--no-confirm``).
4. Run, print the report, and exit 1 if any key failed or was canceled.

Ctrl-C during a run stops new keys from starting and lets in-flight
transfers finish; a second Ctrl-C aborts immediately.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Callable, Iterable, Mapping

from dotenv import load_dotenv

from . import __version__
from .adapters import (
    BlobStorageAdapter,
    KeyVaultAdapter,
    LocalDotenvAdapter,
    LocalFileAdapter,
)
from .config import Config, load_config, read_config_files, require
from .config_schema import build_config, yaml_fallbacks
from .core.credentials import default_credential
from .env_ref import read_dotenv
from .errors import SyncError
from .logger import setup_logging
from .sync import (
    BlobNameMapper,
    SyncEngine,
    SyncReport,
    explicit_keys,
    format_plan,
    format_sync_report,
    report_to_json,
    template_keys,
    union_keys,
)
from .sync.mapper import DEFAULT_BLOB_NAME

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _add_sync_options(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("sync options")
    group.add_argument(
        "-m",
        "--sync-mode",
        help="auto (alias: sync), push, pull or pull-always "
        "(default: AZSYNC_MODE, config file, or auto)",
    )
    group.add_argument(
        "-c",
        "--check-only",
        action="store_true",
        help="Only print the actions; exit 1 if any are pending",
    )
    group.add_argument(
        "-y",
        "--no-confirm",
        action="store_true",
        help="Do not ask for confirmation before making changes",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="azsync",
        description="Synchronize dotenv files and local files with Azure "
        "Key Vault and Blob Storage, newest timestamp wins.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview, confirm and sync .env against the vault in KEY_VAULT_URL
  azsync dotenv

  # Fail in CI if .env is out of date with the vault
  azsync dotenv --check-only --sync-mode pull

  # Upload a settings file unconditionally
  azsync file settings.json --container-name configs -m push -y

Endpoint options accept env:VAR references, resolved from the dotenv file
first and the environment second.
        """,
    )
    parser.add_argument(
        "-e",
        "--env-file",
        type=Path,
        default=Path(".env"),
        help="Dotenv file to load (default: .env)",
    )
    parser.add_argument(
        "--no-env-file",
        action="store_true",
        help="Do not load a dotenv file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-vv for debug)",
    )
    parser.add_argument(
        "--log-file", help="Also write log records to this file"
    )
    parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        default="text",
        help="Log record format on stderr (default: text)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the plan or report as JSON",
    )
    parser.add_argument(
        "--max-parallel",
        type=int,
        help="Maximum keys processed concurrently (1-64, default: 8)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"azsync version {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    dotenv_parser = subparsers.add_parser(
        "dotenv",
        help="Sync dotenv variables with Key Vault secrets",
        description="Sync the variables of the dotenv file with Key Vault "
        "secrets.  Underscores in variable names map to hyphens in "
        "secret names.",
    )
    dotenv_parser.add_argument(
        "-t",
        "--template-file",
        type=Path,
        default=Path(".env.example"),
        help="File listing the variables to sync (default: .env.example)",
    )
    dotenv_parser.add_argument(
        "--no-template",
        action="store_true",
        help="Sync the variables defined in the dotenv file itself",
    )
    dotenv_parser.add_argument(
        "--all",
        action="store_true",
        dest="all_keys",
        help="Sync every variable and every secret, ignoring the template",
    )
    dotenv_parser.add_argument(
        "--key-vault-url",
        help="Key Vault URL or env:VAR reference (default: env:KEY_VAULT_URL)",
    )
    _add_sync_options(dotenv_parser)

    file_parser = subparsers.add_parser(
        "file",
        help="Sync local files with blobs",
        description="Sync local files with blobs.  To sync a directory, "
        "archive it first.",
    )
    file_parser.add_argument(
        "paths", nargs="+", type=Path, help="Files to sync"
    )
    file_parser.add_argument(
        "--blob-name",
        default=DEFAULT_BLOB_NAME,
        help="Blob name template; placeholders #name#, #stem#, #ext# "
        "(default: #name#)",
    )
    file_parser.add_argument(
        "--storage-account-url",
        help="Blob endpoint or env:VAR reference "
        "(default: env:STORAGE_ACCOUNT_URL)",
    )
    file_parser.add_argument(
        "--container-name",
        help="Blob container or env:VAR reference "
        "(default: env:AZSYNC_CONTAINER)",
    )
    _add_sync_options(file_parser)

    return parser


# ---------------------------------------------------------------------------
# Running the engine
# ---------------------------------------------------------------------------


def run_engine(
    engine: SyncEngine, keys: Iterable[str], dry_run: bool = False
) -> SyncReport:
    """Run *engine* with Ctrl-C mapped to cooperative cancellation."""

    async def _main() -> SyncReport:
        loop = asyncio.get_running_loop()

        def _interrupt() -> None:
            print(
                "\nCanceling; press Ctrl-C again to abort.", file=sys.stderr
            )
            engine.cancel()
            # A second Ctrl-C raises KeyboardInterrupt as usual
            loop.remove_signal_handler(signal.SIGINT)

        try:
            loop.add_signal_handler(signal.SIGINT, _interrupt)
            installed = True
        except (NotImplementedError, RuntimeError, ValueError):
            # No signal support (Windows, or not the main thread)
            installed = False
        try:
            return await engine.run_async(keys, dry_run=dry_run)
        finally:
            if installed:
                loop.remove_signal_handler(signal.SIGINT)

    return asyncio.run(_main())


def confirm(input_fn: Callable[[str], str] = input) -> bool:
    """Ask until the user answers yes or no."""
    while True:
        answer = input_fn("Confirm (yes/no)? ").strip().lower()
        if answer in ("y", "yes"):
            return True
        if answer in ("n", "no"):
            return False


def _emit(report: SyncReport, as_json: bool, text: str) -> None:
    if as_json:
        print(json.dumps(report_to_json(report), indent=2))
    else:
        print(text)


def execute(
    engine: SyncEngine,
    keys: list[str],
    args: argparse.Namespace,
    locations: Mapping[str, str] | None = None,
    input_fn: Callable[[str], str] = input,
) -> int:
    """Plan, confirm and run; return the process exit status."""
    plan = run_engine(engine, keys, dry_run=True)
    # A Ctrl-C after the last planned key still cancels the whole command
    if plan.canceled or engine.canceled:
        print("Interrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED

    if args.json and (args.check_only or not plan.pending):
        _emit(plan, True, "")
    elif not args.json:
        print(format_plan(plan, locations))

    if plan.has_failures and not plan.pending:
        return EXIT_FAILED
    if not plan.pending:
        return EXIT_OK
    if args.check_only:
        return EXIT_FAILED

    if not args.no_confirm:
        print()
        if not confirm(input_fn):
            print("Aborted.", file=sys.stderr)
            return EXIT_FAILED

    report = run_engine(engine, keys)
    _emit(report, args.json, format_sync_report(report))
    if report.has_failures or report.canceled:
        return EXIT_FAILED
    return EXIT_OK


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def dotenv_command(
    args: argparse.Namespace,
    config: Config,
    input_fn: Callable[[str], str] = input,
) -> int:
    if args.no_env_file:
        raise ValueError("azsync dotenv needs a dotenv file; drop --no-env-file")
    vault_url = require(
        config,
        "key_vault_url",
        "Set KEY_VAULT_URL or pass --key-vault-url.",
    )
    logger.info("Using Key Vault %s", vault_url)

    local = LocalDotenvAdapter(args.env_file)
    remote = KeyVaultAdapter(vault_url, default_credential())
    if args.all_keys:
        keys = union_keys(local, remote)
    else:
        keys = template_keys(
            args.template_file, args.env_file, no_template=args.no_template
        )

    engine = SyncEngine(local, remote, config.to_settings())
    return execute(engine, keys, args, input_fn=input_fn)


def file_command(
    args: argparse.Namespace,
    config: Config,
    input_fn: Callable[[str], str] = input,
) -> int:
    account_url = require(
        config,
        "storage_account_url",
        "Set STORAGE_ACCOUNT_URL or pass --storage-account-url.",
    )
    container = require(
        config,
        "container_name",
        "Set AZSYNC_CONTAINER or pass --container-name.",
    )
    logger.info("Using container %s at %s", container, account_url)

    mapping = BlobNameMapper(args.blob_name).map_paths(args.paths)
    local = LocalFileAdapter(mapping)
    remote = BlobStorageAdapter(account_url, container, default_credential())
    locations = {name: str(path) for name, path in mapping.items()}

    engine = SyncEngine(local, remote, config.to_settings())
    return execute(
        engine, explicit_keys(mapping), args, locations, input_fn=input_fn
    )


_COMMANDS = {
    "dotenv": dotenv_command,
    "file": file_command,
}


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def main(
    argv: list[str] | None = None,
    input_fn: Callable[[str], str] = input,
) -> int:
    """Parse *argv*, run the selected command and return the exit status."""
    args = build_parser().parse_args(argv)

    dotenv: dict[str, str] = {}
    if not args.no_env_file:
        # Real environment variables take precedence over the file
        load_dotenv(args.env_file, override=False)
        dotenv = read_dotenv(args.env_file)

    try:
        unified = build_config(read_config_files())
    except ValueError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    setup_logging(
        verbosity=args.verbose,
        debug=unified.sync.debug,
        log_file=args.log_file or unified.logging.file,
        debug_format=args.log_format,
        default_level=unified.logging.level,
    )

    try:
        config = load_config(
            mode=args.sync_mode,
            max_parallel=args.max_parallel,
            key_vault_url=getattr(args, "key_vault_url", None),
            storage_account_url=getattr(args, "storage_account_url", None),
            container_name=getattr(args, "container_name", None),
            yaml_fallbacks=yaml_fallbacks(unified),
            dotenv=dotenv,
        )
        return _COMMANDS[args.command](args, config, input_fn=input_fn)
    except SyncError as exc:
        # FatalError from the run, or a failure listing keys
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILED
    except ValueError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
