#!/usr/bin/env python3
"""
main.py — Quick-start entry point.

Drop images into ``images/`` and run:

    python main.py

Or use the full CLI:

    python -m bitmap_art.cli batch --help
    python -m bitmap_art.cli single my_photo.jpg --mode color --dither bayer4
"""

import sys

from bitmap_art.cli import app

if __name__ == "__main__":
    if len(sys.argv) == 1:
        sys.argv.append("batch")
    app()
