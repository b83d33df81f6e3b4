from __future__ import annotations

import logging
import os
from pathlib import Path


logger = logging.getLogger("site-engine.env")


def load_local_env(env_path: Path | str = Path(".env"), *, override: bool = False) -> None:
    """Load key=value pairs from a local .env file without extra dependencies.

    Variables already present in the process environment win unless
    ``override`` is set.
    """
    path = Path(env_path)
    if not path.exists():
        return

    for line_number, raw_line in enumerate(path.read_text().splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if "=" not in line:
            # Values may hold credentials, so only the position is logged.
            logger.warning("Skipping malformed .env line %d in %s", line_number, path)
            continue

        key, value = line.split("=", 1)
        clean_key = key.strip()
        clean_value = value.strip().strip('"').strip("'")
        if not override and clean_key in os.environ:
            continue
        os.environ[clean_key] = clean_value
