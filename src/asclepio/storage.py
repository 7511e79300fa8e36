"""Storage and naming utilities."""

from __future__ import annotations

import os
from datetime import datetime

HISTORY_KEY = "asclepio_session_history"


def timestamp_slug(dt: datetime | None = None) -> str:
    now = dt or datetime.now()
    return now.strftime("%Y-%m-%d")


def build_export_basename(title: str, dt: datetime | None = None) -> str:
    slug = "-".join(title.split()) if title else "Sesion"
    slug = "".join(ch for ch in slug if ch.isalnum() or ch in "-_")
    return f"{timestamp_slug(dt)}--{slug or 'Sesion'}"


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def default_data_dir() -> str:
    return os.path.join(os.path.expanduser("~"), ".asclepio")


def ensure_structure(data_dir: str) -> dict:
    root = data_dir or default_data_dir()
    paths = {
        "root": root,
        "history": os.path.join(root, "History"),
        "exports": os.path.join(root, "Exports"),
        "logs": os.path.join(root, "Logs"),
    }
    for path in paths.values():
        ensure_dir(path)
    return paths
