"""
linklookup demo: look up one email against a running service.

Usage:
    python demo.py --email user@example.com [--base-url http://localhost:3000] [--api-key KEY]

Exit codes:
    0  link found
    1  not found, rejected (401) or other error
"""

import argparse
import sys

import httpx


DEFAULT_BASE_URL = "http://localhost:3000"


def main() -> None:
    parser = argparse.ArgumentParser(description="linklookup demo")
    parser.add_argument("--email", required=True, help="Email address to look up")
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL, help="Service base URL")
    parser.add_argument("--api-key", default="", help="Shared secret for POST /lookup")
    args = parser.parse_args()

    headers = {"x-api-key": args.api_key} if args.api_key else {}

    try:
        with httpx.Client(base_url=args.base_url, timeout=10) as client:
            health = client.get("/health").json()
            print(f"Service has {health['loaded']} records from {health['csvPath']}")

            resp = client.post("/lookup", json={"email": args.email}, headers=headers)
            resp.raise_for_status()
            print(resp.json()["loginLink"])
    except httpx.HTTPStatusError as exc:
        if exc.response.status_code == 404:
            print(f"No login link for {args.email}", file=sys.stderr)
        elif exc.response.status_code == 401:
            print("Request rejected (401): wrong or missing API key", file=sys.stderr)
        else:
            print(f"HTTP error {exc.response.status_code}: {exc.response.text}", file=sys.stderr)
        sys.exit(1)
    except httpx.HTTPError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
