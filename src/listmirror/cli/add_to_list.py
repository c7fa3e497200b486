"""Manually add one DID to the list mapped to a label.

Usage: listmirror-add <did> <label>
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from listmirror.common.logging import get_logger, setup_logging
from listmirror.common.models import MutationOutcome
from listmirror.common.settings import ConfigError, get_settings, validate_settings
from listmirror.lists.factory import create_mutator, create_registry, create_repo_client
from listmirror.lists.registry import ListRegistry
from listmirror.repo import RepoError

log = get_logger(__name__)


def _available_labels(registry: ListRegistry) -> str:
    lines = ["Available labels:"]
    lines.extend(f"  {label}" for label in registry.labels())
    return "\n".join(lines)


def build_parser(registry: ListRegistry) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="listmirror-add",
        description="Add a DID to the list configured for a label.",
        epilog=_available_labels(registry)
        + '\n\nExample:\n  listmirror-add "did:plc:example" "maga-trump"',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("did", nargs="?", help="subject DID, e.g. did:plc:abc123")
    parser.add_argument("label", nargs="?", help="label value mapped to a list")
    return parser


async def add(did: str, label: str) -> int:
    settings = get_settings()
    registry = create_registry(settings)
    async with create_repo_client(settings) as repo:
        try:
            await repo.login()
        except RepoError as exc:
            log.critical("login_failed", error=str(exc))
            return 1
        log.info("authenticated", did=repo.session_did)

        mutator = create_mutator(settings, repo, registry)
        outcome = await mutator.add(label, did)

    if outcome is MutationOutcome.FAILED:
        log.error("add_failed", did=did, label=label)
        return 1
    log.info("done", did=did, label=label, outcome=outcome.value)
    return 0


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    setup_logging(settings.log_level, settings.environment)
    registry = create_registry(settings)

    parser = build_parser(registry)
    args = parser.parse_args(argv)

    if not args.did or not args.label:
        parser.print_help()
        return 1

    if args.label not in registry:
        log.error("list_not_found_for_label", label=args.label)
        print(f"\n{_available_labels(registry)}")
        return 1

    try:
        validate_settings(settings)
    except ConfigError as exc:
        log.critical("config_invalid", missing=exc.missing, error=str(exc))
        print(str(exc))
        return 1

    return asyncio.run(add(args.did, args.label))


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
