#!/usr/bin/env python3
"""
Dev helper: send a test request to the local food scanner relay.

Builds a request for one of the relay's entry points and POST-s it:

  webhook   chat platform event with one image attachment  → POST /webhook
  file      multipart upload of a local image              → POST /webhook-file
  url       direct {imageUrl, userName, userEmail} body    → POST /analyze-url

Usage
-----
# Chat webhook event pointing at a public image (synchronous reply)
python scripts/send_test_webhook.py --image-url https://example.com/food.jpg

# Same, but ask the relay to answer through the callback channel
python scripts/send_test_webhook.py --image-url https://example.com/food.jpg \\
    --bot-token TOKEN --bot-unique-name caloriescanner

# Upload a local photo
python scripts/send_test_webhook.py --mode file --file lunch.jpg

# Direct pass-through
python scripts/send_test_webhook.py --mode url --image-url https://example.com/food.jpg

# Print the payload without sending it
python scripts/send_test_webhook.py --dry-run

Environment / .env
------------------
RELAY_URL   Base URL of the relay (default: http://localhost:3000).
            Overridden by --url.
"""

import argparse
import json
import mimetypes
import os
import sys
import textwrap
from pathlib import Path

import httpx
from dotenv import load_dotenv

DEFAULT_IMAGE_URL = "https://upload.wikimedia.org/wikipedia/commons/1/15/Red_Apple.jpg"

_ENDPOINTS = {
    "webhook": "/webhook",
    "file": "/webhook-file",
    "url": "/analyze-url",
}


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------

def build_webhook_payload(
    image_url: str,
    user_name: str,
    user_email: str,
    bot_token: str | None = None,
    bot_unique_name: str | None = None,
) -> dict:
    """
    Build a chat platform webhook event (JSON body for /webhook).

      message.attachments[] - {url}
      user                  - {name, email}
      bot                   - {token, unique_name}  (only when a token is given)
    """
    payload: dict = {
        "message": {
            "text": "",
            "attachments": [{"url": image_url}],
        },
        "user": {"name": user_name, "email": user_email},
    }
    if bot_token:
        payload["bot"] = {"token": bot_token, "unique_name": bot_unique_name or ""}
    return payload


def build_url_payload(image_url: str, user_name: str, user_email: str) -> dict:
    """Build the /analyze-url pass-through body."""
    return {"imageUrl": image_url, "userName": user_name, "userEmail": user_email}


def build_file_form(user_name: str, user_email: str) -> dict:
    """Form fields sent alongside the /webhook-file upload."""
    return {"userName": user_name, "userEmail": user_email}


# ---------------------------------------------------------------------------
# Pretty printer
# ---------------------------------------------------------------------------

def _print_response(response: httpx.Response) -> None:
    status = response.status_code
    symbol = "OK" if status == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {status}")
    try:
        body = response.json()
    except ValueError:
        print(response.text)
        return
    text = body.get("text") if isinstance(body, dict) else None
    if text:
        print(text)
        print()
    print(json.dumps(body, indent=2, ensure_ascii=False))


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    script_dir = Path(__file__).resolve().parent
    load_dotenv(script_dir.parent / ".env", override=False)

    parser = argparse.ArgumentParser(
        prog="send_test_webhook.py",
        description=textwrap.dedent("""\
            Send a test request to the food scanner relay.
        """),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            Examples:
              python scripts/send_test_webhook.py
              python scripts/send_test_webhook.py --mode file --file lunch.jpg
              python scripts/send_test_webhook.py --mode url --image-url https://example.com/a.jpg
        """),
    )
    parser.add_argument(
        "--url",
        default=os.getenv("RELAY_URL", "http://localhost:3000"),
        help="Relay base URL (default: RELAY_URL or http://localhost:3000)",
    )
    parser.add_argument(
        "--mode",
        default="webhook",
        choices=list(_ENDPOINTS),
        help="Which entry point to exercise (default: webhook)",
    )
    parser.add_argument("--image-url", default=DEFAULT_IMAGE_URL, help="Image URL to analyse")
    parser.add_argument("--file", default=None, metavar="PATH", help="Image file for --mode file")
    parser.add_argument("--user-name", default="Test User")
    parser.add_argument("--user-email", default="test@example.com")
    parser.add_argument("--bot-token", default=None, help="Callback token (webhook mode)")
    parser.add_argument("--bot-unique-name", default=None, help="Bot unique name (webhook mode)")
    parser.add_argument(
        "--timeout",
        type=float,
        default=90.0,
        help="Seconds to wait for the relay (default: 90, above the relay's own 60s ceiling)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the payload without sending it.",
    )

    args = parser.parse_args(argv)
    endpoint = f"{args.url.rstrip('/')}{_ENDPOINTS[args.mode]}"

    print(f"Mode      : {args.mode}")
    print(f"Endpoint  : {endpoint}")
    print(f"User      : {args.user_name} <{args.user_email}>")

    if args.mode == "file":
        if not args.file:
            print("ERROR: --mode file requires --file PATH", file=sys.stderr)
            return 1
        file_path = Path(args.file)
        if not file_path.exists():
            print(f"ERROR: File not found: {file_path}", file=sys.stderr)
            return 1
        content = file_path.read_bytes()
        content_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
        form = build_file_form(args.user_name, args.user_email)
        print(f"Attachment: {file_path} ({len(content):,} bytes, {content_type})")

        if args.dry_run:
            print("\n[DRY RUN] Form fields:")
            print(json.dumps(form, indent=2))
            return 0

        request_kwargs = {
            "data": form,
            "files": {"file": (file_path.name, content, content_type)},
        }
    else:
        if args.mode == "webhook":
            payload = build_webhook_payload(
                args.image_url,
                args.user_name,
                args.user_email,
                bot_token=args.bot_token,
                bot_unique_name=args.bot_unique_name,
            )
        else:
            payload = build_url_payload(args.image_url, args.user_name, args.user_email)

        if args.dry_run:
            print("\n[DRY RUN] Payload:")
            print(json.dumps(payload, indent=2))
            return 0

        request_kwargs = {"json": payload}

    try:
        response = httpx.post(endpoint, timeout=args.timeout, **request_kwargs)
    except httpx.ConnectError:
        print(
            f"\nERROR: Could not connect to {endpoint}\n"
            "Is the relay running? Start it with:\n"
            "  food-relay   (or: uvicorn food_relay.main:app --app-dir backend --port 3000)",
            file=sys.stderr,
        )
        return 1
    except httpx.HTTPError as exc:
        print(f"\nERROR: {exc}", file=sys.stderr)
        return 1

    _print_response(response)
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
