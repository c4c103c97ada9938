# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Command-line interface for exploring relationships in a Markdown vault.

Usage:
    relation-explorer VAULT validate
    relation-explorer VAULT ancestors "Some Note" --depth 3
    relation-explorer VAULT --field project --json tree "Some Note" --direction descendants

Exit codes:
- 0: success
- 1: note not found, unknown field, unreadable vault, or (validate) an
  unhealthy graph
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from relation_explorer.config import CONFIG_FILE_NAME, Config
from relation_explorer.logging_setup import setup_logging
from relation_explorer.models import DocumentRef, TreeNode
from relation_explorer.query_api import UnknownFieldError
from relation_explorer.service import TREE_DIRECTIONS, RelationExplorerService
from relation_explorer.vault import MarkdownVault


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="relation-explorer",
        description="Explore parent/child relationships declared in note frontmatter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    relation-explorer ~/notes validate
    relation-explorer ~/notes ancestors "Weekly Review" --depth 3
    relation-explorer ~/notes --json cousins "Weekly Review" --degree 2
        """,
    )
    parser.add_argument("vault", type=Path, help="Vault root directory")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Configuration file (default: VAULT/{CONFIG_FILE_NAME})",
    )
    parser.add_argument("--field", default=None, help="Relationship field to query")
    parser.add_argument("--json", action="store_true", help="Output results as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Write structured JSON logs to this directory",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("validate", help="Report cycles, broken links and orphans")
    commands.add_parser("stats", help="Show graph statistics")
    commands.add_parser("roots", help="List root notes")
    commands.add_parser("cycles", help="List every cycle")

    for name in ("ancestors", "descendants"):
        sub = commands.add_parser(name, help=f"List {name} by generation")
        sub.add_argument("note", help="Note path or name")
        sub.add_argument("--depth", type=int, default=None, help="Generations to walk")

    siblings = commands.add_parser("siblings", help="List notes sharing a parent")
    siblings.add_argument("note", help="Note path or name")

    cousins = commands.add_parser("cousins", help="List cousins of a given degree")
    cousins.add_argument("note", help="Note path or name")
    cousins.add_argument("--degree", type=int, default=1, help="Cousin degree (default: 1)")

    tree = commands.add_parser("tree", help="Print an ancestor or descendant tree")
    tree.add_argument("note", help="Note path or name")
    tree.add_argument("--direction", choices=TREE_DIRECTIONS, default="ancestors")
    tree.add_argument("--depth", type=int, default=None, help="Deepest level to build")

    return parser


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.DEBUG if args.verbose else logging.WARNING
    if args.log_dir is not None:
        setup_logging(log_dir=args.log_dir, log_level=level, console_output=args.verbose)
    else:
        logging.basicConfig(
            level=level,
            stream=sys.stderr,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def _names(documents: List[DocumentRef]) -> str:
    return ", ".join(doc.name for doc in documents) if documents else "(none)"


def _format_tree(node: TreeNode, indent: int = 0) -> List[str]:
    marker = " (cycle)" if node.is_cycle else ""
    lines = [f"{'  ' * indent}- {node.document.name}{marker}"]
    for child in node.children:
        lines.extend(_format_tree(child, indent + 1))
    return lines


# =============================================================================
# Commands
# =============================================================================


def _cmd_validate(service: RelationExplorerService, args: argparse.Namespace) -> int:
    report = service.query_api.validate_graph(args.field)
    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        for issue in report.issues:
            print(f"[{issue.severity}] {issue.message}")
        status = "healthy" if report.is_healthy else "unhealthy"
        print(
            f"Graph is {status}: {report.summary['errors']} error(s), "
            f"{report.summary['warnings']} warning(s)"
        )
    return 0 if report.is_healthy else 1


def _cmd_stats(service: RelationExplorerService, args: argparse.Namespace) -> int:
    stats = service.query_api.get_graph_statistics(args.field).to_dict()
    if args.json:
        print(json.dumps(stats, indent=2))
    else:
        for key, value in stats.items():
            print(f"{key}: {value}")
    return 0


def _cmd_roots(service: RelationExplorerService, args: argparse.Namespace) -> int:
    roots = service.query_api.find_root_documents(args.field)
    if args.json:
        print(json.dumps([doc.to_dict() for doc in roots], indent=2))
    else:
        for doc in roots:
            print(doc.name)
    return 0


def _cmd_cycles(service: RelationExplorerService, args: argparse.Namespace) -> int:
    cycles = service.query_api.get_all_cycles(args.field)
    if args.json:
        print(json.dumps([cycle.to_dict() for cycle in cycles], indent=2))
    elif not cycles:
        print("No cycles found")
    else:
        for cycle in cycles:
            print(cycle.description)
    return 0


def _cmd_ancestors(
    service: RelationExplorerService, args: argparse.Namespace, document: DocumentRef
) -> int:
    if args.command == "ancestors":
        result: Any = service.query_api.get_ancestors(document, args.depth, args.field)
    else:
        result = service.query_api.get_descendants(document, args.depth, args.field)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    for index, generation in enumerate(result.generations, start=1):
        print(f"Generation {index}: {_names(generation)}")
    suffix = " (truncated)" if result.was_truncated else ""
    print(f"{result.total_count} {args.command} in {result.depth} generation(s){suffix}")
    return 0


def _cmd_siblings(
    service: RelationExplorerService, args: argparse.Namespace, document: DocumentRef
) -> int:
    result = service.query_api.get_siblings(document, field=args.field)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(_names(result.siblings))
    return 0


def _cmd_cousins(
    service: RelationExplorerService, args: argparse.Namespace, document: DocumentRef
) -> int:
    result = service.query_api.get_cousins(document, args.degree, args.field)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(_names(result.cousins))
    return 0


def _cmd_tree(
    service: RelationExplorerService, args: argparse.Namespace, document: DocumentRef
) -> int:
    tree = service.build_tree(document, args.direction, args.field, args.depth)
    if args.json:
        print(json.dumps(tree.to_dict(), indent=2))
    else:
        print("\n".join(_format_tree(tree)))
    return 0


GRAPH_COMMANDS: Dict[str, Callable[[RelationExplorerService, argparse.Namespace], int]] = {
    "validate": _cmd_validate,
    "stats": _cmd_stats,
    "roots": _cmd_roots,
    "cycles": _cmd_cycles,
}

DOCUMENT_COMMANDS: Dict[
    str, Callable[[RelationExplorerService, argparse.Namespace, DocumentRef], int]
] = {
    "ancestors": _cmd_ancestors,
    "descendants": _cmd_ancestors,
    "siblings": _cmd_siblings,
    "cousins": _cmd_cousins,
    "tree": _cmd_tree,
}


def run(args: argparse.Namespace) -> int:
    """Build the graphs of a vault and run one command.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    config_path = args.config if args.config is not None else args.vault / CONFIG_FILE_NAME
    config = Config(config_path)

    try:
        vault = MarkdownVault(str(args.vault), ignore_patterns=config.ignore_patterns)
    except NotADirectoryError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    with RelationExplorerService(config, vault) as service:
        service.build_all_graphs()

        try:
            if args.command in GRAPH_COMMANDS:
                return GRAPH_COMMANDS[args.command](service, args)

            document = service.query_api.find_document(args.note, args.field)
            if document is None:
                print(f"Error: note not found: {args.note}", file=sys.stderr)
                return 1
            return DOCUMENT_COMMANDS[args.command](service, args, document)

        except UnknownFieldError as e:
            print(f"Error: unknown relationship field {e}", file=sys.stderr)
            return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the relation-explorer command.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
