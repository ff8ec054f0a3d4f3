#!/usr/bin/env python3
"""Dump the resolved settings and ``[[servers]]`` nodes as JSON.

RPC passwords are printed as ``<masked>`` unless ``--show-secrets`` is given.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

from multichain_exporter.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main(["--print-resolved", *sys.argv[1:]]))
