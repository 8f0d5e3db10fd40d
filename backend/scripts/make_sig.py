#!/usr/bin/env python3
# make_sig.py
# Usage:
#   python make_sig.py payload.json --secret s3cret
#   cat payload.json | XIHI_SECRET=s3cret python make_sig.py
# Optional:
#   python make_sig.py payload.json --event pull_request --headers
#
# The signature covers the file's exact bytes, so send that same file:
#   curl --data-binary @payload.json -H "Content-Type: application/json" ...

import argparse
import json
import os
import sys

from xihi.middleware.gate import EVENT_HEADER, SIGNATURE_HEADER
from xihi.services.signature import sign


def make_signature(secret: str, payload: bytes) -> str:
    """Generate an X-Hub-Signature header value for testing."""
    return sign(secret.encode("utf-8"), payload)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Sign a webhook body the way GitHub does.")
    parser.add_argument(
        "payload",
        nargs="?",
        default="-",
        help="file holding the JSON body, or - for stdin (default)",
    )
    parser.add_argument(
        "--secret",
        default=os.getenv("XIHI_SECRET"),
        help="shared webhook secret (default: $XIHI_SECRET)",
    )
    parser.add_argument("--event", default="push", help="event name for --headers")
    parser.add_argument(
        "--headers",
        action="store_true",
        help="print every header a delivery needs instead of the bare signature",
    )
    return parser.parse_args(argv)


def read_payload(source: str) -> bytes:
    if source == "-":
        return sys.stdin.buffer.read()
    with open(source, "rb") as f:
        return f.read()


def main(argv=None) -> int:
    args = parse_args(argv)
    if not args.secret:
        print("Error: no secret given and XIHI_SECRET is unset", file=sys.stderr)
        return 1

    payload = read_payload(args.payload)
    try:
        json.loads(payload)
    except ValueError:
        print("Error: payload is not JSON; the receiver would answer 400", file=sys.stderr)
        return 1

    signature = make_signature(args.secret, payload)
    if args.headers:
        print("Content-Type: application/json")
        print(f"{SIGNATURE_HEADER.title()}: {signature}")
        print(f"{EVENT_HEADER.title()}: {args.event}")
    else:
        print(signature)
    return 0


if __name__ == "__main__":
    sys.exit(main())
