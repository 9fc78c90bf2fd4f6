#!/usr/bin/env python3
from __future__ import annotations

import json
import os
import sys

from urllib.error import URLError
from urllib.request import urlopen


def main() -> int:
    base_url = os.getenv("RAGCHAT_API_URL", "http://localhost:8000").rstrip("/")
    try:
        with urlopen(f"{base_url}/livez", timeout=5) as r:
            print("/livez:", r.read().decode("utf-8"))
        with urlopen(f"{base_url}/healthz", timeout=5) as r2:
            health = json.loads(r2.read().decode("utf-8"))
        print("/healthz:", health)
        with urlopen(f"{base_url}/documents", timeout=5) as r3:
            documents = json.loads(r3.read().decode("utf-8"))["documents"]
        print(f"/documents: {len(documents)} stored")
    except (URLError, ValueError, KeyError) as exc:
        print(f"Smoke check failed: {exc}", file=sys.stderr)
        return 1
    if not health.get("credential_configured"):
        print("Warning: no provider credential configured; chat replies will be degraded.", file=sys.stderr)
    print("Smoke check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
