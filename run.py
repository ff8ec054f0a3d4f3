#!/usr/bin/env python3
"""Run the exporter from a source checkout without installing it.

Health probes listen on HEALTH_PORT (8080) and /metrics on METRICS_PORT (9100);
nodes are read from MULTICHAIN_EXPORTER_CONFIG_PATH, falling back to ./config.toml.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

from multichain_exporter.main import run  # noqa: E402

if __name__ == "__main__":
    run()
