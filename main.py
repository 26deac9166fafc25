#!/usr/bin/env python3
"""
main.py - Quick-start entry point.

    python main.py generate target.jpg --materials posters/

Or use the full CLI:

    python -m material_mosaic.cli generate --help
    python -m material_mosaic.cli catalog --materials posters/
"""

from material_mosaic.cli import app

if __name__ == "__main__":
    app()
