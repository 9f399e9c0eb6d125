"""Safety Notifications maintenance CLI.

Runs one scheduler job inside the domain context. Intended to be invoked
from cron; every job is idempotent and safe to run redundantly.

Usage:
    python src/manage.py hourly-digest
    python src/manage.py daily-digest --as-of 2026-01-01T09:00:00+00:00
    python src/manage.py delayed-queue
    python src/manage.py expire-stealth
"""

import argparse
import json
import sys
from datetime import datetime

_JOBS = ["hourly-digest", "daily-digest", "delayed-queue", "expire-stealth"]


def run_job(job, as_of=None):
    """Process the scheduler command for ``job`` and return its summary."""
    from safety_notifications.context import NotificationContext, bind_context
    from safety_notifications.domain import safety_notifications
    from safety_notifications.scheduler import (
        ExpireStealthWindows,
        ProcessDelayedQueue,
        RunDailyDigest,
        RunHourlyDigest,
    )

    commands = {
        "hourly-digest": RunHourlyDigest,
        "daily-digest": RunDailyDigest,
        "delayed-queue": ProcessDelayedQueue,
        "expire-stealth": ExpireStealthWindows,
    }

    safety_notifications.init()
    bind_context(NotificationContext())
    with safety_notifications.domain_context():
        return safety_notifications.process(commands[job](as_of=as_of), asynchronous=False)


def main():
    parser = argparse.ArgumentParser(description="Safety Notifications scheduler jobs")
    parser.add_argument("job", choices=_JOBS, help="Job to run once")
    parser.add_argument(
        "--as-of",
        type=datetime.fromisoformat,
        help="Process as of this ISO timestamp (default: now)",
    )
    args = parser.parse_args()

    try:
        summary = run_job(args.job, args.as_of)
    except Exception as exc:
        print(f"{args.job} failed: {exc}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(summary, default=str, indent=2))


if __name__ == "__main__":
    main()
