from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from lifequest.config import load_settings
from lifequest.db import Database
from lifequest.jobs_runner import JOB_NAMES, run_job
from lifequest.logging_setup import setup_logging


def main() -> None:
    if len(sys.argv) != 2:
        raise SystemExit(f"Usage: python jobs.py <{'|'.join(JOB_NAMES)}>")

    settings = load_settings()
    setup_logging(settings.log_level)
    db = Database(settings.database_path, busy_timeout_seconds=settings.busy_timeout_seconds)
    run_job(sys.argv[1], db, settings)


if __name__ == "__main__":
    main()
