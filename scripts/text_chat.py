#!/usr/bin/env python3

from __future__ import annotations

import argparse
import json
import sys

import httpx


def _print_media(media: list[dict] | None) -> None:
    for item in media or []:
        compact = json.dumps(item, ensure_ascii=False)
        print(f"(media: {compact})")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Interactive text-only chat with KitBot via /agent/turn")
    parser.add_argument("--base-url", default="http://localhost:8000", help="API base URL (default: http://localhost:8000)")
    parser.add_argument("--sender-id", default="5548999990000", help="Phone used as the conversation id")
    parser.add_argument("--api-key", default="", help="Value for the X-API-Key header, if the server requires one")
    parser.add_argument("--timeout", type=float, default=60.0, help="HTTP timeout seconds (default: 60)")
    args = parser.parse_args(argv)

    base_url = args.base_url.rstrip("/")
    headers = {"X-API-Key": args.api_key} if args.api_key else {}

    print("Text chat started. Type /exit to quit.")
    print("History is kept by the server, keyed by --sender-id.")

    with httpx.Client(timeout=args.timeout, headers=headers) as client:
        while True:
            try:
                user_text = input("you> ").strip()
            except (EOFError, KeyboardInterrupt):
                print()
                break

            if not user_text:
                continue
            if user_text.lower() in {"/exit", "/quit", "exit", "quit"}:
                break

            try:
                resp = client.post(f"{base_url}/agent/turn", json={"sender_id": args.sender_id, "text": user_text})
                resp.raise_for_status()
                data = resp.json()
            except httpx.HTTPStatusError as e:
                body = e.response.text
                print(f"error> HTTP {e.response.status_code}: {body}")
                continue
            except Exception as e:
                print(f"error> {e}")
                continue

            reply = (data.get("reply") or "").strip()
            if not reply:
                print("bot> (no reply)")
            else:
                print(f"bot> {reply}")

            _print_media(data.get("media"))

    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
