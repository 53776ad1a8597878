"""Root conftest: applies .env.test to the environment before settings load."""
from __future__ import annotations

import os
from pathlib import Path


def _apply_env_file(path: Path) -> None:
    if not path.exists():
        return
    for raw in path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = (part.strip() for part in line.split("=", 1))
        os.environ.setdefault(key, value.strip("'\""))


_apply_env_file(Path(__file__).resolve().parent / ".env.test")
