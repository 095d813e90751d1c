#!/usr/bin/env python3
# =============================================================================
# NimbleAI Backend CLI
# =============================================================================
# Runs registered routes and actions locally through the same dispatcher the
# Lambdas use. AWS calls go to the real account in --region, so broadcast
# needs --endpoint (or API_GATEWAY_ENDPOINT) to reach live sockets.
#
#   python tools/cli.py list_actions --category websocket
#   python tools/cli.py broadcast --user-id u-1 --message-data '{"message": "hi"}'
#   python tools/cli.py --json '{"action": "help"}' --pretty
# =============================================================================

import argparse
import json
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from nimble.runtime.envelope import Envelope
from nimble.runtime.dispatch import dispatch
from nimble.runtime.deps import create_deps, resolve_ws_endpoint

EXAMPLES = """
examples:
  %(prog)s help
  %(prog)s list_actions --category direct
  %(prog)s broadcast --user-id u-1 --message-data '{"message": "New order #42"}'
  %(prog)s --file broadcast.json --endpoint https://abc123.execute-api.ap-south-1.amazonaws.com/prod
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Dispatch NimbleAI backend actions locally",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("action", nargs="?", help="route key or action name (see list_actions)")

    source = parser.add_argument_group("payload")
    source.add_argument("--json", "-j", help="full request payload as JSON; ignores the action argument")
    source.add_argument("--file", "-f", help="read the request payload from a JSON file")
    source.add_argument("--user-id", dest="user_id", help="user_id for broadcast")
    source.add_argument("--message-data", dest="message_data", help="message_data JSON for broadcast")
    source.add_argument("--category", help="category filter for list_actions")

    env = parser.add_argument_group("environment")
    env.add_argument("--region", "-r", default="ap-south-1", help="AWS region (default: %(default)s)")
    env.add_argument("--endpoint", help="WebSocket callback URL, https://{api-id}.execute-api.{region}.amazonaws.com/{stage}")

    parser.add_argument("--pretty", "-p", action="store_true", help="indent the JSON result")
    return parser


def build_payload(args, parser) -> dict:
    if args.file:
        with open(args.file) as f:
            return json.load(f)
    if args.json:
        return json.loads(args.json)
    if not args.action:
        parser.error("an action, --json or --file is required")

    payload = {"action": args.action}
    if args.user_id:
        payload["user_id"] = args.user_id
    if args.message_data:
        payload["message_data"] = json.loads(args.message_data)
    if args.category:
        payload["category"] = args.category
    return payload


def main():
    parser = build_parser()
    args = parser.parse_args()

    payload = build_payload(args, parser)
    payload["_source"] = "cli"

    deps = create_deps(region=args.region, ws_endpoint=args.endpoint or resolve_ws_endpoint())
    result = dispatch(Envelope.from_action_request(payload, source="cli"), deps)

    print(json.dumps(result, indent=2 if args.pretty else None, ensure_ascii=False, default=str))

    if result.get("statusCode", 200) >= 400:
        sys.exit(1)


if __name__ == "__main__":
    main()
