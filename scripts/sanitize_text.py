#!/usr/bin/env python3
"""Run the link sanitizer over a text file (or stdin) and print the result.

Usage:
    python scripts/sanitize_text.py answer.md
    echo "see https://example.com" | LINK_DEBUG=1 python scripts/sanitize_text.py --trace
"""

import sys

from link_guard.sanitize import main

if __name__ == "__main__":
    sys.exit(main())
