"""
Annotate an HTML file offline.

    highlightq-annotate page.html -o page.annotated.html
    highlightq-annotate page.html --store ~/.highlightq/store.db --stats

Runs the same pipeline a live page gets (scan, classify, render) once over
the whole document and writes the annotated markup.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from highlightq.classification.models import ConfigurationError, ProviderConfig
from highlightq.classification.runtime import ProviderRuntime
from highlightq.gateway.boundary import BoundaryGateway
from highlightq.observability.logging import get_logger
from highlightq.page.document import PageDocument
from highlightq.page.session import PageSession
from highlightq.storage.cache import CacheStore
from highlightq.storage.kv import KeyValueStore, MemoryKeyValueStore, open_store

logger = get_logger(__name__)


async def annotate(
    markup: str,
    origin_context: str,
    store: KeyValueStore | None = None,
    config: ProviderConfig | None = None,
) -> tuple[str, dict[str, Any]]:
    """
    Highlight `markup` and return (annotated_markup, stats).

    Raises:
        ConfigurationError: `config` is rejected by the runtime
    """
    kv = store if store is not None else MemoryKeyValueStore()
    runtime = ProviderRuntime(kv)
    await runtime.initialize()
    if config is not None:
        await runtime.update_config(config.to_storage())

    document = PageDocument(markup)
    session = PageSession(
        document,
        runtime=runtime,
        gateway=BoundaryGateway(runtime),
        cache=CacheStore(kv),
        origin_context=origin_context,
        store=kv,
    )
    await session.start()
    await session.settle()
    session.stop()

    stats = {
        "units": session.units_seen,
        "highlights": session.highlights_rendered,
        "restricted": session.restricted,
        "provider": runtime.snapshot().provider.name,
    }
    return document.render(), stats


def _build_config(args: argparse.Namespace) -> ProviderConfig | None:
    changes: dict[str, Any] = {}
    if args.provider:
        changes["mode"] = args.provider
    if args.endpoint:
        changes["endpoint"] = args.endpoint
    if args.credential:
        changes["credential"] = args.credential
    if args.no_cache:
        changes["cacheEnabled"] = False
    if not changes:
        return None
    return ProviderConfig.from_env().merged(changes)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Highlight sentiment in an HTML file")
    parser.add_argument("input", help="HTML file to annotate ('-' for stdin)")
    parser.add_argument("-o", "--output", help="Write here instead of stdout")
    parser.add_argument("--origin", help="Origin the page is treated as coming from")
    parser.add_argument("--store", help="SQLite store for the cache and settings")
    parser.add_argument("--provider", choices=["local", "remote"], help="Classification provider")
    parser.add_argument("--endpoint", help="Remote provider endpoint")
    parser.add_argument("--credential", help="Remote provider credential")
    parser.add_argument("--no-cache", action="store_true", help="Disable the result cache")
    parser.add_argument("--stats", action="store_true", help="Print run statistics to stderr")
    args = parser.parse_args(argv)

    if args.input == "-":
        markup = sys.stdin.read()
        origin = args.origin or "file://stdin"
    else:
        path = Path(args.input)
        if not path.exists():
            print(f"Input file not found: {path}", file=sys.stderr)
            return 1
        markup = path.read_text(encoding="utf-8")
        origin = args.origin or path.resolve().as_uri()

    try:
        config = _build_config(args)
    except ConfigurationError as e:
        print(f"Invalid provider configuration: {e}", file=sys.stderr)
        return 2

    store = open_store(args.store) if args.store else None
    try:
        annotated, stats = asyncio.run(annotate(markup, origin, store=store, config=config))
    finally:
        close = getattr(store, "close", None)
        if callable(close):
            close()

    if args.output:
        Path(args.output).write_text(annotated, encoding="utf-8")
        logger.info("Wrote %d highlights to %s", stats["highlights"], args.output)
    else:
        sys.stdout.write(annotated)

    if args.stats:
        print(json.dumps(stats, indent=2), file=sys.stderr)
    if stats["restricted"]:
        print(f"Origin {origin} is restricted; nothing was highlighted", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
