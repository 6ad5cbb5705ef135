"""Entry point for running DeLearner from the command line.

This module provides the main entry point for DeLearner.
It handles:
- Configuration loading
- Logging setup with secret sanitization
- Backend instantiation (API key checked before any work starts)
- The analyze, project, run and apply subcommands

Results are printed to stdout as camelCase JSON; logs go to stderr.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from delearner._version import __version__

if TYPE_CHECKING:
    from delearner.core.assistant import CodeAssistant
    from delearner.models.files import CodeFile

log = structlog.get_logger()


def setup_logging(
    debug: bool = False,
    log_format: str = "console",
    file_path: Path | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure structured logging with secret sanitization.

    Args:
        debug: Enable debug logging if True
        log_format: Output format ("json" or "console")
        file_path: Path to log file (if file logging enabled)
        file_enabled: Whether to enable file logging
    """
    from delearner.utils.logging import LogFormat, LogLevel, configure_logging

    level = LogLevel.DEBUG if debug else LogLevel.INFO
    fmt = LogFormat(log_format.lower()) if isinstance(log_format, str) else log_format

    configure_logging(
        level=level,
        log_format=fmt,
        file_path=file_path,
        file_enabled=file_enabled,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed argument namespace
    """
    parser = argparse.ArgumentParser(
        prog="delearner",
        description="DeLearner - AI code review, debug traces, profiling and tests",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Path to a YAML configuration file (default: built-in defaults)",
    )
    common.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    common.add_argument(
        "--format",
        choices=["json", "console"],
        default=None,
        help="Log output format (default: logging.format from --config, else console)",
    )

    analysis = argparse.ArgumentParser(add_help=False, parents=[common])
    analysis.add_argument(
        "-l",
        "--language",
        default=None,
        help="Declared language id, or 'all' to auto-detect "
        "(default: detected from the file name, else 'all')",
    )
    analysis.add_argument(
        "-m",
        "--model",
        default=None,
        help="Model id (default: session.default_model from config)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", parents=[analysis], help="Full analysis of one file")
    analyze.add_argument("file", type=Path)

    project = sub.add_parser("project", parents=[analysis], help="Full analysis of a directory")
    project.add_argument("directory", type=Path)

    run = sub.add_parser("run", parents=[analysis], help="Predict output and complexity of a file")
    run.add_argument("file", type=Path)

    apply = sub.add_parser(
        "apply", parents=[common], help="Replace one line of a file with a snippet"
    )
    apply.add_argument("file", type=Path)
    apply.add_argument("-n", "--line", type=int, required=True, help="1-based line number")
    snippet = apply.add_mutually_exclusive_group(required=True)
    snippet.add_argument("-s", "--snippet", help="Replacement code (fences are stripped)")
    snippet.add_argument("--snippet-file", type=Path, help="Read the replacement from a file")
    apply.add_argument(
        "-i",
        "--in-place",
        action="store_true",
        help="Write the result back to the file instead of printing it",
    )

    return parser.parse_args(argv)


def _print_json(data: dict[str, Any]) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _language_for(args: argparse.Namespace, file_name: str | None) -> str:
    from delearner.core.languages import detect_language
    from delearner.models.requests import AUTO_DETECT

    if args.language:
        return str(args.language)
    return detect_language(file_name) or AUTO_DETECT


async def run_command(args: argparse.Namespace) -> int:
    """Run one subcommand.

    Args:
        args: Parsed command line

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    from delearner.config.loader import ConfigurationError, load_config
    from delearner.core.assistant import EmptyInputError
    from delearner.core.languages import LanguageMismatchError
    from delearner.core.patching import PatchError
    from delearner.utils.async_helpers import AnalysisFailure, IngestionError

    log.debug("starting_delearner", version=__version__, command=args.command)

    try:
        config = load_config(args.config)

        if args.config is not None:
            from delearner.utils.logging import configure_logging

            configure_logging(
                level="DEBUG" if args.debug else config.logging.level,
                log_format=args.format or config.logging.format,
                file_path=config.logging.file.path if config.logging.file.enabled else None,
                file_enabled=config.logging.file.enabled,
            )

        if args.command == "apply":
            return await _apply(args)

        from delearner.core.assistant import create_assistant

        assistant = create_assistant(config)

        if args.command == "analyze":
            return await _analyze(args, assistant)
        if args.command == "project":
            return await _project(args, assistant)
        if args.command == "run":
            return await _quick_run(args, assistant)

        log.error("unknown_command", command=args.command)
        return 2

    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except FileNotFoundError as e:
        log.error("file_not_found", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        log.error("configuration_invalid", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (
        AnalysisFailure,
        EmptyInputError,
        IngestionError,
        LanguageMismatchError,
        PatchError,
    ) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        log.info("keyboard_interrupt_received")
        return 130


async def _read_one(path: Path) -> "CodeFile":
    from delearner.core.ingestion import PathFileHandle, read_files

    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    store = await read_files([PathFileHandle(path)])
    return store.files[0]


async def _analyze(args: argparse.Namespace, assistant: "CodeAssistant") -> int:
    file = await _read_one(args.file)
    result = await assistant.analyze_file(file, _language_for(args, file.name), args.model)
    _print_json(result.model_dump(mode="json", by_alias=True))
    return 0


async def _project(args: argparse.Namespace, assistant: "CodeAssistant") -> int:
    from delearner.core.ingestion import load_directory, read_files
    from delearner.models.requests import AUTO_DETECT

    store = await read_files(load_directory(args.directory))
    result = await assistant.analyze_project(store, args.language or AUTO_DETECT, args.model)
    _print_json(result.model_dump(mode="json", by_alias=True))
    return 0


async def _quick_run(args: argparse.Namespace, assistant: "CodeAssistant") -> int:
    file = await _read_one(args.file)
    result = await assistant.quick_run(
        file.content, _language_for(args, file.name), args.model, file_name=file.name
    )
    _print_json(result.model_dump(mode="json", by_alias=True))
    return 0


async def _apply(args: argparse.Namespace) -> int:
    from delearner.core.patching import PatchTarget, apply_patch
    from delearner.models.files import FileStore

    file = await _read_one(args.file)
    if args.snippet_file is not None:
        snippet = args.snippet_file.read_text(encoding="utf-8")
    else:
        snippet = args.snippet

    store = apply_patch(FileStore([file]), PatchTarget(file.name, args.line, snippet))
    content = store.files[0].content

    if args.in_place:
        args.file.write_text(content, encoding="utf-8")
        log.info("file_written", path=str(args.file))
    else:
        sys.stdout.write(content)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    # Setup logging with CLI options
    setup_logging(
        debug=args.debug,
        log_format=args.format or "console",
    )

    try:
        return asyncio.run(run_command(args))
    except KeyboardInterrupt:
        log.info("shutting_down_gracefully")
        return 130


if __name__ == "__main__":
    sys.exit(main())
