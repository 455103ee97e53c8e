#!/usr/bin/env python3
"""Hammer the public verify endpoint and report how much got throttled.

RUN:  python scripts/load_test_rate_limit.py [BASE_URL]

Prerequisite: the API is running, e.g. uvicorn cert_service.main:app --port 8000

Ids are random, so every served answer is a 404; what matters is the
split between 404 (served) and 429 (throttled).  With the default verify
bucket (30 burst, 0.5/s refill) roughly the first 30 are served.
"""

from __future__ import annotations

import sys
import time
from collections import Counter

import httpx

from cert_service.services.id_minter import new_certificate_id

BASE_URL = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"
TOTAL_REQUESTS = 100


def main() -> None:
    print(f"Target: {BASE_URL}/v1/verify/<random id>  x{TOTAL_REQUESTS}")

    statuses: Counter[int] = Counter()
    first_throttled: int | None = None
    start = time.monotonic()

    with httpx.Client(base_url=BASE_URL, timeout=10) as client:
        for i in range(1, TOTAL_REQUESTS + 1):
            cid = new_certificate_id("CERT", 2024)
            resp = client.get(f"/v1/verify/{cid}")
            statuses[resp.status_code] += 1
            if resp.status_code == 429 and first_throttled is None:
                first_throttled = i
                print(
                    f"  first 429 at request {i}, "
                    f"Retry-After={resp.headers.get('retry-after')}"
                )

    elapsed = time.monotonic() - start
    print()
    print(f"Finished in {elapsed:.2f}s")
    for code, count in sorted(statuses.items()):
        print(f"  {code}: {count}")
    if first_throttled is None:
        print("No requests were throttled; is the rate limiter wired in?")
        sys.exit(1)


if __name__ == "__main__":
    main()
