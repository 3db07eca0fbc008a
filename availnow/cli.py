"""
AvailNow command line

Usage:
    availnow authorize --provider outlook --user-id alice
    availnow callback --provider outlook --code <code> --state <state>
    availnow disconnect --provider google --user-id alice
    availnow status --user-id alice
    availnow availability --user-id alice --days 5
    availnow stats --user-id alice
    availnow serve --port 8000
"""

import argparse
import asyncio
import json
import sys

from dotenv import load_dotenv

from availnow.api.main import create_app
from availnow.config import load_config
from availnow.errors import AvailNowError
from availnow.logging_config import setup_logging
from availnow.models import Provider

ACTIONS = ["authorize", "callback", "disconnect", "status", "availability", "stats", "serve"]


def _require(args, *names: str) -> None:
    missing = [f"--{n.replace('_', '-')}" for n in names if not getattr(args, n)]
    if missing:
        print(f"Error: {', '.join(missing)} required for {args.action}")
        sys.exit(1)


def run(args, app) -> None:
    state = app.state

    if args.action == "authorize":
        _require(args, "provider", "user_id")
        request = state.oauth_manager.begin_authorization(args.user_id, args.provider)
        print(f"Authorization URL:\n{request.authorization_url}")
        print(f"\nState: {request.state}")

    elif args.action == "callback":
        _require(args, "provider", "code", "state")
        result = asyncio.run(state.oauth_manager.complete_authorization(args.provider, args.code, args.state))
        print(f"Connected {result.provider.value} for {result.user_id}")
        for calendar in result.calendars:
            marker = " (primary)" if calendar.primary else ""
            print(f"  - {calendar.name}{marker}: {calendar.id}")

    elif args.action == "disconnect":
        _require(args, "provider", "user_id")
        asyncio.run(state.oauth_manager.disconnect(args.user_id, args.provider))
        print(f"Disconnected {args.provider} for {args.user_id}")

    elif args.action == "status":
        _require(args, "user_id")
        credentials = state.tokens.list_for_user(args.user_id)
        print(f"Found {len(credentials)} connection(s):")
        for credential in credentials:
            print(f"  - {credential.provider.value}: expires {credential.expires_at.isoformat()}")
        for calendar in state.selected.list_for_user(args.user_id):
            print(f"  * selected {calendar.provider.value}/{calendar.calendar_id}")

    elif args.action == "availability":
        _require(args, "user_id")
        result = asyncio.run(
            state.availability.get_range(
                args.user_id, days=args.days, interval=args.interval, track_view=False
            )
        )
        if args.json:
            print(json.dumps(result.to_dict(), indent=2))
            return
        for day in result.days:
            cells = "".join("#" if free else "." for free in day.pattern)
            print(f"{day.date.isoformat()}  {cells}  ({day.available_count} free)")
        next_day = result.next_available.isoformat() if result.next_available else "none in range"
        print(f"Next available: {next_day}")

    elif args.action == "stats":
        _require(args, "user_id")
        print(json.dumps(state.tracker.get_stats(args.user_id).to_dict(), indent=2))


def main():
    parser = argparse.ArgumentParser(description="AvailNow calendar availability")
    parser.add_argument("action", choices=ACTIONS, help="Action to perform")
    parser.add_argument("--provider", choices=[p.value for p in Provider], help="Calendar provider")
    parser.add_argument("--user-id", help="User ID")
    parser.add_argument("--code", help="Authorization code (for callback)")
    parser.add_argument("--state", help="Authorization state (for callback)")
    parser.add_argument("--days", type=int, default=None, help="Days to show (availability)")
    parser.add_argument("--interval", type=int, default=None, help="Bucket size in minutes")
    parser.add_argument("--json", action="store_true", help="JSON output")
    parser.add_argument("--config", help="Path to availnow.yaml")
    parser.add_argument("--host", default="127.0.0.1", help="Bind host (serve)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (serve)")

    args = parser.parse_args()

    load_dotenv()
    setup_logging()
    config = load_config(args.config)

    if args.action == "serve":
        import uvicorn

        uvicorn.run(create_app(config), host=args.host, port=args.port)
        return

    try:
        run(args, create_app(config))
    except AvailNowError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
