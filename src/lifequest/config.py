from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    database_path: Path
    tz: str
    catalog_path: Path
    busy_timeout_seconds: float
    log_level: str


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text().splitlines():
        raw = line.strip()
        if not raw or raw.startswith("#") or "=" not in raw:
            continue
        key, value = raw.split("=", maxsplit=1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _parse_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def load_settings(env_file: Path = Path(".env")) -> Settings:
    _load_env_file(env_file)

    return Settings(
        database_path=Path(os.getenv("DATABASE_PATH", "./data/app.db")),
        tz=os.getenv("TZ", "Europe/Oslo"),
        catalog_path=Path(os.getenv("SHOP_CATALOG", "./catalog.yaml")),
        busy_timeout_seconds=float(max(1, _parse_int(os.getenv("DB_BUSY_TIMEOUT"), 30))),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )
