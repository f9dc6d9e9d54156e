#!/usr/bin/env python3
"""Health check of the walt.id issuer and verifier. Exit code 1 if one is down."""
import logging
import os
import sys

import requests

import env
from tools.health import check_services


def main() -> int:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING"))
    mode = env.currentMode()
    print("=== walt.id Service Health Check ===")
    with requests.Session() as http:
        report = check_services(http, mode)
    for name, entry in report.items():
        mark = "OK  " if entry["ok"] else "DOWN"
        status = entry["status"] if entry["status"] is not None else entry.get("error", "no response")
        print(f"{mark} {name:<24} {entry['url']}  ({status})")
    return 0 if all(entry["ok"] for entry in report.values()) else 1


if __name__ == "__main__":
    sys.exit(main())
