"""CLI entry point for quillstream.

This module acts as the central entry point for the project's CLI tools.
It delegates commands to the orchestrator, the configuration registry or
the test runner.
"""

import argparse
import asyncio
import os
import subprocess
import sys

from dotenv import load_dotenv

from src.config import (
    get_environment,
    get_environment_info,
    list_environment_variables,
)
from src.core import get_logger, setup_logging

# Load environment variables from .env file
load_dotenv()

logger = get_logger("cli")

CATEGORIES = ("generation", "retry", "machine", "guard", "logging")


# =============================================================================
# Write Command
# =============================================================================


async def _run_write(args: argparse.Namespace) -> int:
    """Run one continue-writing session and print the result."""
    from src.llm import StreamingGenerator, create_backend
    from src.machine import GenerationOrchestrator, OrchestratorConfig, State

    backend_kwargs = {}
    if args.backend == "static":
        backend_kwargs["text"] = args.static_text
    elif args.failure_rate is not None:
        backend_kwargs["failure_rate"] = args.failure_rate

    config = OrchestratorConfig.from_environment()
    if args.no_stream:
        config.streaming = False

    orchestrator = GenerationOrchestrator(
        StreamingGenerator(create_backend(args.backend, **backend_kwargs)),
        config,
    )

    outcomes: asyncio.Queue = asyncio.Queue()
    printed = 0

    def on_change(snapshot) -> None:
        nonlocal printed
        buffer = snapshot.context.streaming_buffer
        if snapshot.state is State.LOADING:
            printed = 0
        elif snapshot.state is State.STREAMING and len(buffer) > printed:
            sys.stdout.write(buffer[printed:])
            sys.stdout.flush()
            printed = len(buffer)
        elif snapshot.state in (State.SUCCESS, State.ERROR):
            outcomes.put_nowait(snapshot)

    orchestrator.subscribe(on_change)

    async with orchestrator:
        orchestrator.update_content(args.text)
        orchestrator.continue_writing()
        await orchestrator.settle()

        if orchestrator.state is State.IDLE:
            error = orchestrator.context.error
            reason = error.message if error else "nothing to continue"
            logger.error(f"Generation not started: {reason}")
            return 1

        while True:
            try:
                snapshot = await asyncio.wait_for(outcomes.get(), args.timeout)
            except asyncio.TimeoutError:
                logger.error(f"No result after {args.timeout:g}s")
                return 1

            if snapshot.state is State.SUCCESS:
                if printed:
                    print()
                print(snapshot.context.content)
                return 0

            error = snapshot.context.error
            if printed:
                print()
            if args.retry and not error.context.get("retry_limit_reached"):
                logger.warning(f"{error.kind.value} error: {error.message}, retrying")
                orchestrator.retry()
                continue

            logger.error(f"{error.kind.value} error: {error.message}")
            return 1


def cmd_write(args: argparse.Namespace) -> int:
    """Handle the write command."""
    if args.backend == "static" and args.static_text is None:
        logger.error("--static-text is required with --backend static")
        return 1
    try:
        return asyncio.run(_run_write(args))
    except KeyboardInterrupt:
        return 130


def handle_write_command(argv: list[str]) -> int:
    """Handle write-specific arguments."""
    parser = argparse.ArgumentParser(
        prog="python . write",
        description="Continue a piece of text with the generation orchestrator",
    )
    parser.add_argument(
        "text",
        type=str,
        help="Text to continue",
    )
    parser.add_argument(
        "--backend",
        "-b",
        type=str,
        default="synthetic",
        choices=["synthetic", "static"],
        help="Generation backend (default: synthetic)",
    )
    parser.add_argument(
        "--static-text",
        type=str,
        default=None,
        help="Continuation used by the static backend",
    )
    parser.add_argument(
        "--failure-rate",
        type=float,
        default=None,
        help="Synthetic failure probability (uses FAILURE_RATE if not provided)",
    )
    parser.add_argument(
        "--no-stream",
        action="store_true",
        help="Request the full continuation instead of streaming tokens",
    )
    parser.add_argument(
        "--retry",
        "-r",
        action="store_true",
        help="Retry failed generations while the retry budget allows",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=60.0,
        help="Seconds to wait for each outcome (default: 60)",
    )

    if not argv:
        parser.print_help()
        return 1

    args = parser.parse_args(argv)
    return cmd_write(args)


# =============================================================================
# Config Command
# =============================================================================


def cmd_config(category: str | None = None) -> int:
    """List environment variables with their current values.

    Args:
        category: Only list variables of this category.
    """
    if category is not None and category not in CATEGORIES:
        logger.error(f"Unknown category: {category}. Available: {', '.join(CATEGORIES)}")
        return 1

    variables = list_environment_variables(category)
    current_category = None

    print()
    print("=" * 60)
    print("quillstream Environment Configuration")
    print("=" * 60)
    for var in variables:
        info = get_environment_info(var)
        if info.category != current_category:
            current_category = info.category
            print(f"\n  {current_category}:")
        source = "env" if info.name in os.environ else "default"
        print(f"    {info.name:<22} = {get_environment(var)!s:<8} ({source})")
        print(f"      {info.description}")
    print()
    return 0


def handle_config_command(argv: list[str]) -> int:
    """Handle config-specific arguments."""
    parser = argparse.ArgumentParser(
        prog="python . config",
        description="Show environment configuration",
    )
    parser.add_argument(
        "category",
        nargs="?",
        default=None,
        help=f"Category filter ({', '.join(CATEGORIES)})",
    )
    args = parser.parse_args(argv)
    return cmd_config(args.category)


# =============================================================================
# Test Command
# =============================================================================


def cmd_test(extra_args: list[str]) -> int:
    """Run pytest with provided arguments and test tier options.

    Usage:
        python . test                # Run all tests
        python . test --unit         # Run only unit tests
        python . test --integration  # Run integration tests
        python . test -k "retry"     # Run tests matching pattern
    """
    tier_markers = {
        "--unit": ["-m", "unit"],
        "--integration": ["-m", "integration"],
        "--all": [],
    }

    pytest_args: list[str] = []
    remaining_args: list[str] = []

    for arg in extra_args:
        if arg in tier_markers:
            pytest_args.extend(tier_markers[arg])
        else:
            remaining_args.append(arg)

    cmd = [sys.executable, "-m", "pytest", *pytest_args, *remaining_args]
    logger.info(f"Running: {' '.join(cmd)}")

    try:
        return subprocess.call(cmd)
    except KeyboardInterrupt:
        return 130


# =============================================================================
# Main
# =============================================================================


def show_help() -> None:
    """Display CLI help message."""
    print("Usage: python . {command} [args]")
    print("\nCommands:")
    print("  write      Continue a piece of text")
    print("  config     Show environment configuration")
    print("  test       Run pytest with tier options")
    print("\nExamples:")
    print("  python . write 'It was a dark night'")
    print("  python . write 'Hello world' --no-stream")
    print("  python . write 'Hello world' -b static --static-text 'The sun'")
    print("  python . config retry")
    print("  python . test --unit")


def main() -> int:
    """Main entry point for the CLI."""
    if len(sys.argv) < 2:
        show_help()
        return 1

    command = sys.argv[1]
    rest_args = sys.argv[2:]

    if command in ("-h", "--help"):
        show_help()
        return 0

    commands = {
        "write": lambda: handle_write_command(rest_args),
        "config": lambda: handle_config_command(rest_args),
        "test": lambda: cmd_test(rest_args),
    }

    if command in commands:
        setup_logging()
        return commands[command]()

    logger.error(f"Unknown command: {command}")
    show_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
