import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from stellr.config import MATCH_REQUEST_EXPIRY_HOURS
from stellr.database import SessionLocal
from stellr.services.match_requests import expire_stale_requests


def main() -> None:
    parser = argparse.ArgumentParser(description="Expire pending match requests with no response inside the window")
    parser.add_argument("--window-hours", type=int, default=MATCH_REQUEST_EXPIRY_HOURS)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    now = datetime.now(timezone.utc)
    with SessionLocal() as db:
        expired = expire_stale_requests(db, now=now, window_hours=max(1, args.window_hours))

    print(json.dumps({"expired": expired, "window_hours": max(1, args.window_hours), "ran_at": now.isoformat()}, indent=2))


if __name__ == "__main__":
    main()
