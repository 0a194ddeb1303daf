"""CLI entrypoints for reqsync commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError
from .logging import configure_logging
from .requirements.definitions import RequirementDefinitionError
from .workspace import Workspace


def _add_verbosity_options(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    default: object = argparse.SUPPRESS if suppress_default else False
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=default,
        help="Increase log verbosity for troubleshooting.",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=default,
        help="Only log warnings and errors.",
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root holding .reqsync.yml (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reqsync",
        description="Keep component requirements in sync with the project's artifacts.",
    )
    _add_verbosity_options(parser)
    parser.add_argument("--log-file", type=Path, default=None, help="Also write debug logs to this file.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser(
        "sync",
        help="Recompute requirements for the project's components.",
    )
    _add_verbosity_options(sync_parser, suppress_default=True)
    _add_path_argument(sync_parser)
    sync_parser.add_argument(
        "--force",
        action="store_true",
        help="Clear and recompute every requirement for every component.",
    )
    sync_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute requirements without writing the store or the status report.",
    )
    sync_parser.add_argument(
        "--changed",
        nargs="+",
        metavar="ID",
        default=None,
        help="Component ids known to have changed.",
    )
    sync_parser.add_argument(
        "--diff-base",
        default=None,
        help="Commit or ref to compare against when detecting changed components.",
    )

    graph_parser = subparsers.add_parser(
        "graph",
        help="Check the declared dependency graph for cycles.",
    )
    _add_verbosity_options(graph_parser, suppress_default=True)
    _add_path_argument(graph_parser)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for reqsync commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose),
        quiet=bool(getattr(args, "quiet", False)),
        log_file=args.log_file,
    )

    workspace = Workspace()

    if args.command == "sync":
        dry_run = bool(args.dry_run)
        try:
            outcome = workspace.run_sync(
                args.path,
                force=bool(args.force),
                dry_run=dry_run,
                changed=args.changed,
                diff_base=args.diff_base,
            )
        except FileNotFoundError as exc:
            parser.exit(1, f"{exc}\n")
        except (ConfigError, RequirementDefinitionError) as exc:
            parser.exit(1, f"Invalid configuration: {exc}\n")
        except RuntimeError as exc:
            parser.exit(1, f"reqsync sync failed: {exc}\nRun with --verbose for more details.\n")
        summary = outcome.summary
        suffix = " (dry-run)" if dry_run else ""
        print(
            f"{outcome.mode.capitalize()} sync{suffix}: {summary.complete}/{summary.components} components "
            f"complete, {summary.satisfied}/{summary.requirements} requirements satisfied"
        )
        if outcome.report_path is not None:
            print(f"Status report written to {_relativize(outcome.report_path)}")
    elif args.command == "graph":
        try:
            check = workspace.check_graph(args.path)
        except FileNotFoundError as exc:
            parser.exit(1, f"{exc}\n")
        except ConfigError as exc:
            parser.exit(1, f"Invalid configuration: {exc}\n")
        if not check.acyclic:
            lines = [f"Found {len(check.cycles)} dependency cycle(s):"]
            lines.extend(f"  {' -> '.join(cycle.component_ids + cycle.component_ids[:1])}" for cycle in check.cycles)
            parser.exit(1, "\n".join(lines) + "\n")
        print("No dependency cycles found")
        if check.order:
            print(f"Dependency order: {', '.join(check.order)}")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
