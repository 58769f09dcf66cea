"""CLI entry point: python -m link_guard.sanitize [FILE] [--trace]"""

from __future__ import annotations

import argparse
import json
import sys

from link_guard.config import configure_logging
from link_guard.links.sanitizer import LinkSanitizer, get_link_sanitizer


def main(argv: list[str] | None = None, sanitizer: LinkSanitizer | None = None) -> int:
    parser = argparse.ArgumentParser(description="Sanitize the links in a piece of text")
    parser.add_argument("path", nargs="?", help="Input file (defaults to stdin)")
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Print every link decision to stderr (requires LINK_DEBUG=1)",
    )
    args = parser.parse_args(argv)

    configure_logging()
    if args.path:
        with open(args.path, encoding="utf-8") as fp:
            text = fp.read()
    else:
        text = sys.stdin.read()

    sanitizer = sanitizer or get_link_sanitizer()
    result = sanitizer.sanitize_with_trace(text)
    sys.stdout.write(result.text)

    if args.trace and not sanitizer.debug:
        print("--trace needs LINK_DEBUG=1", file=sys.stderr)
    elif args.trace:
        print("\n" + "=" * 50, file=sys.stderr)
        for decision in result.trace(sanitizer.trace_limit):
            print(json.dumps(decision, ensure_ascii=False), file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
