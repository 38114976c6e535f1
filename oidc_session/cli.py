"""Command-line interface for oidc_session configuration and discovery."""

from __future__ import annotations

import argparse
import asyncio
import os

from pathlib import Path

from .config import CONFIG_FILE_ENV, CONFIG_FILE_NAME, SessionSettings, user_config_path
from .discovery import UrlDiscoveryClient
from .exceptions import DiscoveryError


def main(argv: list[str] | None = None) -> int:
    """Run the main CLI entry point.

    Parameters
    ----------
    argv : list of str, optional
        Arguments to parse (defaults to ``sys.argv[1:]``).

    Returns
    -------
    int
        Exit code.
    """
    parser = argparse.ArgumentParser(
        prog="oidc-session",
        description="oidc_session configuration and discovery tools",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    config_parser = subparsers.add_parser(
        "config",
        help="Show or export configuration",
    )
    config_group = config_parser.add_mutually_exclusive_group()
    config_group.add_argument(
        "--show",
        action="store_true",
        help="Show current configuration",
    )
    config_group.add_argument(
        "--toml",
        action="store_true",
        help="Export configuration as TOML",
    )
    config_group.add_argument(
        "--env",
        action="store_true",
        help="Export configuration as environment variables",
    )
    config_group.add_argument(
        "--sources",
        action="store_true",
        help="Show configuration file sources",
    )
    config_parser.add_argument(
        "--output",
        "-o",
        type=str,
        help="Output file path (default: stdout)",
    )

    init_parser = subparsers.add_parser(
        "init",
        help=f"Initialize a {CONFIG_FILE_NAME} configuration file",
    )
    init_parser.add_argument(
        "--force",
        "-f",
        action="store_true",
        help="Overwrite existing configuration file",
    )
    init_parser.add_argument(
        "--path",
        "-p",
        type=str,
        default=CONFIG_FILE_NAME,
        help=f"Path for configuration file (default: {CONFIG_FILE_NAME})",
    )

    discover_parser = subparsers.add_parser(
        "discover",
        help="Resolve a well-known key through the discovery service",
    )
    discover_parser.add_argument(
        "--search-key",
        "-k",
        type=str,
        default=None,
        help="Key to resolve (uses config default)",
    )
    discover_parser.add_argument(
        "--region",
        "-r",
        type=str,
        default=None,
        help="Deployment region (uses config default)",
    )

    args = parser.parse_args(argv)

    if args.command == "config":
        return handle_config(args)
    if args.command == "init":
        return handle_init(args)
    if args.command == "discover":
        return handle_discover(args)
    parser.print_help()
    return 0


def handle_config(args: argparse.Namespace) -> int:
    """Handle the config command.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line arguments.

    Returns
    -------
    int
        Exit code.
    """
    if args.sources:
        return show_config_sources()

    settings = SessionSettings()

    if args.toml:
        output = settings.to_toml()
    elif args.env:
        output = settings.to_env()
    else:
        output = settings.show()

    if args.output:
        Path(args.output).write_text(output, encoding="utf-8")
        print(f"Configuration written to {args.output}")
    else:
        print(output)

    return 0


def handle_init(args: argparse.Namespace) -> int:
    """Write a configuration file populated with the current settings.

    Returns
    -------
    int
        Exit code (1 if the file exists and ``--force`` was not given).
    """
    path = Path(args.path)
    if path.exists() and not args.force:
        print(f"{path} already exists. Use --force to overwrite.")
        return 1

    path.write_text(SessionSettings().to_toml(), encoding="utf-8")
    print(f"Created {path}")
    return 0


def handle_discover(args: argparse.Namespace) -> int:
    """Resolve a key through the discovery service and print the URL.

    Returns
    -------
    int
        Exit code (1 if discovery failed).
    """
    settings = SessionSettings().discovery
    search_key = args.search_key or settings.search_key

    async def _resolve() -> str:
        client = UrlDiscoveryClient.from_settings(settings)
        try:
            return await client.discover_url(search_key, region=args.region)
        finally:
            await client.close()

    try:
        url = asyncio.run(_resolve())
    except DiscoveryError as exc:
        print(f"Discovery failed: {exc}")
        return 1

    print(url)
    return 0


def show_config_sources() -> int:
    """Show configuration file sources and their status.

    Returns
    -------
    int
        Exit code.
    """
    sources = [
        ("Built-in defaults", "", True),
        ("pyproject.toml [tool.oidc_session]", "pyproject.toml", None),
        (f"./{CONFIG_FILE_NAME}", CONFIG_FILE_NAME, None),
        ("User config", str(user_config_path()), None),
        (CONFIG_FILE_ENV, os.environ.get(CONFIG_FILE_ENV, ""), None),
        ("Environment variables", "OIDC_SESSION_* vars", None),
    ]

    print("Configuration Sources (in order of precedence):\n")
    print(f"{'Source':<40} {'Status':<15} {'Path'}")
    print("-" * 80)

    for name, path_str, forced_status in sources:
        if forced_status is True:
            status = "✓ Active"
            path_display = ""
        elif name == "Environment variables":
            env_vars = [
                k for k in os.environ if k.startswith("OIDC_SESSION_") and k != CONFIG_FILE_ENV
            ]
            if env_vars:
                status = f"✓ {len(env_vars)} vars"
                path_display = ", ".join(env_vars[:3])
                if len(env_vars) > 3:
                    path_display += "..."
            else:
                status = "✗ No vars"
                path_display = ""
        elif not path_str:
            status = "✗ Not set"
            path_display = ""
        else:
            path = Path(path_str).expanduser()
            status = "✓ Found" if path.exists() else "✗ Not found"
            path_display = str(path)

        print(f"{name:<40} {status:<15} {path_display}")

    print("\nNote: Later sources override earlier ones.")
    return 0
