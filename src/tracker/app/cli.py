from __future__ import annotations

import argparse
import sys

from tracker.app.runner import run


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="visitor-tracker")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_visit = sub.add_parser("visit", help="Simulate one page load")
    p_visit.add_argument("--config", default="config/tracker.yaml")
    p_visit.add_argument("--url", required=True)
    p_visit.add_argument("--referrer", default="")
    p_visit.add_argument("--page-name", default="Page")
    p_visit.add_argument("--user-agent", default="")
    p_visit.add_argument("--bot", action="store_true", help="Treat the visitor as a bot")

    args = parser.parse_args(argv)

    if args.cmd == "visit":
        result = run(
            args.config,
            url=args.url,
            referrer=args.referrer,
            page_name=args.page_name,
            user_agent=args.user_agent,
            user_agent_is_bot=args.bot,
        )
        # minimal stdout signal
        print(
            f"anonymous_id={result.anonymous_id} cohort_id={result.cohort_id or ''} "
            f"device_id={result.device_id} session_id={result.device_session_id} "
            f"url={result.final_url}"
        )
        return 0

    return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
