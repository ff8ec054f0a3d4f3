#!/usr/bin/env python3
"""Check a MultiChain node configuration file from a source checkout.

    ./validate_config.py --config config.example.toml

Prints ``Configuration OK (N node(s))``; entries missing a mandatory field are skipped.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

from multichain_exporter.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
