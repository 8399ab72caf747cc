"""
Juggernaut MCP CLI.

Usage:
    juggernaut-mcp [serve]
    juggernaut-mcp doctor
    python -m juggernaut.cli --help

Commands:
    serve     Run the stdio tool server (default when no command is given).
    doctor    Report whether the server would start: data directory, plugin
              gate, database reachability and schema. Prints JSON.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict

from juggernaut.core.config import JuggernautConfig
from juggernaut.core.errors import JuggernautError
from juggernaut.core.feature_flags import get_flags
from juggernaut.store.sqlite_mirror import SQLiteMirrorStore
from juggernaut.version import __version__


def build_report(config: JuggernautConfig) -> Dict[str, Any]:
    flags = get_flags(Path(config.registry_path))
    report: Dict[str, Any] = {
        "version": __version__,
        "data_dir": config.data_dir,
        "registry_path": config.registry_path,
        "mcp_server_enabled": flags.mcp_server,
        "database_path": config.store.path,
        "lock_timeout_ms": config.store.lock_timeout_ms,
        "database_reachable": False,
        "missing_tables": [],
        "issues": [],
    }
    if not flags.mcp_server:
        report["issues"].append("MCP Server plugin is disabled in the plugin registry.")

    try:
        with SQLiteMirrorStore(config.store.path, lock_timeout_ms=config.store.lock_timeout_ms) as store:
            report["missing_tables"] = store.missing_tables()
            report["database_reachable"] = True
    except JuggernautError as exc:
        report["issues"].append(str(exc))
    if report["missing_tables"]:
        report["issues"].append(
            f"Database is missing tables: {', '.join(report['missing_tables'])}"
        )

    report["ready"] = not report["issues"]
    return report


def cmd_serve(args: argparse.Namespace) -> int:
    from juggernaut.mcp.lifecycle import run

    return run()


def cmd_doctor(args: argparse.Namespace) -> int:
    report = build_report(JuggernautConfig.from_env())
    print(json.dumps(report, indent=2))
    return 0 if report["ready"] else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="juggernaut-mcp",
        description="Juggernaut MCP tool server for the local WordPress mirror.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:\n"
               "  juggernaut-mcp\n"
               "  juggernaut-mcp doctor\n",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser(
        "serve",
        help="Run the stdio MCP server.",
        description="Speaks Content-Length framed JSON-RPC on stdin/stdout until stdin closes.",
    )
    subparsers.add_parser(
        "doctor",
        help="Check that the server can start.",
        description=(
            "Resolves the data directory and plugin registry the same way the\n"
            "server does, then checks the plugin gate and the database schema."
        ),
    )
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command in (None, "serve"):
        return cmd_serve(args)
    if args.command == "doctor":
        return cmd_doctor(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
