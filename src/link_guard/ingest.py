"""CLI entry point: python -m link_guard.ingest"""

from __future__ import annotations

import argparse
import sys

from link_guard.config import config, configure_logging
from link_guard.rag.ingest import GreenlistError, ingest_greenlist
from link_guard.rag.store import GreenlistStore


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Load greenlist URLs into the vector store")
    parser.add_argument("--path", default=config.rag.greenlist_path, help="JSON greenlist file")
    parser.add_argument(
        "--append",
        action="store_true",
        help="Keep existing entries instead of rebuilding the collection",
    )
    args = parser.parse_args(argv)

    configure_logging()
    store = GreenlistStore(
        persist_dir=config.rag.chroma_persist_dir,
        collection_name=config.rag.collection_name,
        embedding_model=config.rag.embedding_model,
    )
    try:
        stored = ingest_greenlist(args.path, store, reset=not args.append)
    except GreenlistError as exc:
        print(f"❌ {exc}", file=sys.stderr)
        return 1

    print(f"✅ Stored {stored} greenlist URLs in {config.rag.chroma_persist_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
