#!/usr/bin/env python3
"""Main entry point for Diff Digest.

This module provides the command-line interface. Each invocation restores
the persisted client state, runs one command and writes every change
back, so browsing and interrupted generations survive between runs.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from rich.live import Live

from diff_digest import __version__
from diff_digest.client import DiffDigestClient
from diff_digest.config.env_schema import EnvironmentConfig
from diff_digest.config.loader import DEFAULT_CONFIG_PATH, ConfigLoader
from diff_digest.config.models import Config
from diff_digest.state.schema import GenerationState
from diff_digest.ui.console import get_console
from diff_digest.ui.display import items_table, notes_panel, page_summary
from diff_digest.utils.exceptions import ConfigurationError, DiffDigestError
from diff_digest.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed command-line arguments.
    """
    parser = argparse.ArgumentParser(
        prog="diff-digest",
        description="Browse merged pull requests and stream AI release notes for them",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
        help="Show program version and exit",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--env",
        type=Path,
        default=Path(".env"),
        help="Path to environment file (default: .env)",
    )
    parser.add_argument(
        "--debug",
        nargs="?",
        const="DEBUG",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Enable debug mode with optional log level (default: DEBUG)",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )

    commands = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")
    commands.add_parser("fetch", help="Fetch the first page of pull requests again")
    commands.add_parser("more", help="Fetch the next page of pull requests")
    list_parser = commands.add_parser("list", help="List fetched pull requests and their notes state")
    list_parser.add_argument("--json", action="store_true", help="Print items as JSON")

    generate = commands.add_parser("generate", help="Generate release notes from scratch")
    generate.add_argument("ids", nargs="+", metavar="ID", help="Pull request id(s)")

    resume = commands.add_parser("resume", help="Resume interrupted release notes")
    resume.add_argument("ids", nargs="+", metavar="ID", help="Pull request id(s)")

    toggle = commands.add_parser("toggle", help="Show or hide release notes")
    toggle.add_argument("id", metavar="ID", help="Pull request id")

    show = commands.add_parser("show", help="Show release notes")
    show.add_argument("id", metavar="ID", help="Pull request id")

    commands.add_parser("reset", help="Forget all fetched pull requests and notes")

    return parser.parse_args(argv)


def load_configuration(args: argparse.Namespace) -> Tuple[Config, EnvironmentConfig]:
    """Load the YAML configuration with environment overrides applied.

    Raises:
        ConfigurationError: If either source is invalid.
    """
    try:
        env = EnvironmentConfig(_env_file=args.env)
    except ValueError as e:
        raise ConfigurationError(f"Invalid environment settings: {e}")
    config = ConfigLoader(args.config, overrides=env.config_overrides()).load()
    if args.debug:
        config.logging.level = args.debug
    return config, env


async def stream_generation(
    client: DiffDigestClient, item_ids: List[str], resume: bool
) -> int:
    """Start sessions for item_ids and follow them until they settle.

    A single session is streamed to the terminal as it arrives; several
    sessions are followed in a live table.

    Returns:
        Exit code: 0 if every item completed.
    """
    console = get_console()
    for item_id in item_ids:
        client.view(item_id)  # fail fast on unknown ids

    if len(item_ids) == 1:

        def print_increment(item_id: str, text: str) -> None:
            console.print(text, end="", markup=False, highlight=False, soft_wrap=True)

        remove = client.on_increment(print_increment)
        live = None
    else:

        def render():
            return items_table([client.view(i) for i in item_ids], client.pagination)

        live = Live(render(), console=console, refresh_per_second=8)
        live.start()
        remove = client.on_increment(lambda item_id, text: live.update(render()))

    try:
        for item_id in item_ids:
            if resume:
                client.resume_generation(item_id)
            else:
                client.request_generation(item_id)
        await asyncio.gather(*(client.wait(item_id) for item_id in item_ids))
    except asyncio.CancelledError:
        await client.sessions.abort_all()
        console.print("\n[yellow]Generation aborted.[/yellow]")
        return 130
    finally:
        remove()
        if live is not None:
            live.update(
                items_table([client.view(i) for i in item_ids], client.pagination)
            )
            live.stop()

    exit_code = 0
    for item_id in item_ids:
        view = client.view(item_id)
        if len(item_ids) == 1:
            console.print()
        if view.state is GenerationState.COMPLETE:
            console.print(f"[green]✓ Notes for {item_id} complete[/green]")
            continue
        exit_code = 1
        if view.state is GenerationState.INTERRUPTED:
            console.print(
                f"[yellow]{item_id}: {view.interruption_marker} "
                f"Run `diff-digest resume {item_id}`.[/yellow]"
            )
        else:
            console.print(f"[red]{item_id}: {view.accumulated_text}[/red]")
    return exit_code


async def run_command(args: argparse.Namespace, client: DiffDigestClient) -> int:
    """Run one CLI command against a started client.

    Returns:
        Exit code.
    """
    console = get_console()

    if args.command in ("fetch", "more"):
        result = await (client.refetch() if args.command == "fetch" else client.fetch_next_page())
        if result is None:
            console.print("No more pages to fetch.")
        else:
            console.print(page_summary(result))
        console.print(items_table(client.views(), client.pagination))
    elif args.command == "list":
        if args.json:
            console.print_json(data=[view.to_dict() for view in client.views()])
        else:
            console.print(items_table(client.views(), client.pagination))
    elif args.command in ("generate", "resume"):
        return await stream_generation(client, args.ids, resume=args.command == "resume")
    elif args.command == "toggle":
        visible = client.toggle_visibility(args.id)
        console.print(f"Notes for {args.id} are now {'shown' if visible else 'hidden'}.")
    elif args.command == "show":
        console.print(notes_panel(client.view(args.id)))
    elif args.command == "reset":
        await client.reset_all()
        console.print("All stored pull requests and notes were cleared.")
    return 0


async def run_application(args: argparse.Namespace) -> int:
    """Run the Diff Digest application.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    console = get_console()
    try:
        config, env = load_configuration(args)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 2

    setup_logging(
        level=config.logging.level,
        log_dir=config.logging.directory,
        log_to_file=config.logging.log_to_file,
    )
    logger.debug(f"Environment: {env.mask_sensitive_values()}")

    try:
        client = DiffDigestClient.from_config(config, env)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 2

    client.start()
    try:
        return await run_command(args, client)
    except DiffDigestError as e:
        logger.debug(f"Command {args.command} failed", exc_info=True)
        console.print(f"[red]Error:[/red] {e.message}")
        return 1
    finally:
        await client.close()
        if client.persistence_degraded:
            console.print(
                "[yellow]Warning: changes could not be saved and were not persisted "
                "this session.[/yellow]"
            )


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point for the application."""
    args = parse_arguments(argv)

    if args.no_color:
        get_console().no_color = True

    try:
        exit_code = asyncio.run(run_application(args))
    except KeyboardInterrupt:
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
