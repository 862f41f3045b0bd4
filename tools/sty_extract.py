#!/usr/bin/env python3
"""
GBST style extraction CLI wrapper.

Same commands as the installed ``sty-extract`` script (see gbstyle/cli.py).
"""

from __future__ import annotations

from gbstyle.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
