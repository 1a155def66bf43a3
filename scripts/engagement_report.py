"""Print the engagement report of one tenant as JSON.

Reads records from the configured source (``NEON_URL`` or the SQLite file
at ``ANALYTICS_DB_PATH``)::

    python scripts/engagement_report.py acme --cohort-type weekly --days 30

The exit status is non-zero when the report could not be produced.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from engagement_analytics.analytics.cohorts import COHORT_TYPES
from engagement_analytics.analytics.report import ReportRequest, run_engagement_report


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("tenant_id")
    parser.add_argument("--cohort-type", default="monthly", choices=COHORT_TYPES)
    parser.add_argument("--days", type=int, default=None)
    parser.add_argument("--no-churn", action="store_true", help="skip the churn analysis")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    result = run_engagement_report(
        ReportRequest(
            tenant_id=args.tenant_id,
            cohort_type=args.cohort_type,
            include_churn=not args.no_churn,
            days=args.days,
        )
    )
    json.dump(result, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    return 0 if result["ok"] else 1


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
