#!/usr/bin/env python3
"""
Smoke check for a running intranet API.

Logs in with one account, calls the read endpoints every screen relies on
and reports failures. Demo accounts come from ``manage.py populate_data``
(password ``password123``).

    python smoke_api.py --username user1a2b3c0 --password password123
"""
import argparse
import json
import os
import sys
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import List, Optional

import requests

BASE_URL = os.getenv("SMOKE_BASE_URL", "http://127.0.0.1:8000")

READ_ENDPOINTS = [
    ("/healthz", "health"),
    ("/api/auth/me", "current user"),
    ("/api/organizations/accessible", "accessible organizations"),
    ("/api/departments/tree", "department tree"),
    ("/api/employees?pageSize=5", "employee directory"),
    ("/api/employees/stats", "employee stats"),
    ("/api/tasks?pageSize=5", "task list"),
    ("/api/tasks/board", "task board"),
    ("/api/tasks/stats", "task stats"),
    ("/api/schedules/stats", "schedule stats"),
    ("/api/files?pageSize=5", "file list"),
    ("/api/documents/stats", "document categories"),
    ("/api/notifications?pageSize=5", "notifications"),
    ("/api/notifications/unread-count", "unread count"),
    ("/api/dashboard", "dashboard"),
    ("/api/messenger/rooms", "chat rooms"),
]


@dataclass
class CheckResult:
    success: bool
    endpoint: str
    method: str
    status_code: int
    response_time: float
    error_message: str = ""
    description: str = ""


class SmokeRunner:
    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")
        self.session = requests.Session()
        self.results: List[CheckResult] = []
        self.last_response: Optional[requests.Response] = None

    def _record(self, method, endpoint, response: Optional[requests.Response], elapsed, description,
                expected=200, error=""):
        status = response.status_code if response is not None else 0
        ok = response is not None and status == expected
        if response is not None and not ok:
            error = response.text[:200]
        result = CheckResult(ok, endpoint, method, status, elapsed, error, description)
        self.results.append(result)
        mark = "OK  " if ok else "FAIL"
        print(f"{mark} {method} {endpoint} [{status}] {elapsed:.2f}s {description}")
        return result

    def call(self, method: str, endpoint: str, description: str, payload=None, expected: int = 200):
        start = time.time()
        try:
            response = self.session.request(method, f"{self.base_url}{endpoint}", json=payload, timeout=15)
            self.last_response = response
        except requests.RequestException as e:
            return self._record(method, endpoint, None, time.time() - start, description, expected, str(e))
        return self._record(method, endpoint, response, time.time() - start, description, expected)

    def login(self, username: str, password: str) -> bool:
        result = self.call("POST", "/api/auth/login", f"login as {username}",
                           {"username": username, "password": password})
        if not result.success:
            return False
        token = self.last_response.json()["token"]
        self.session.headers["Authorization"] = f"Token {token}"
        return True

    def run(self, username: str, password: str) -> bool:
        if self.login(username, password):
            for endpoint, description in READ_ENDPOINTS:
                self.call("GET", endpoint, description)
            self.call("POST", "/api/auth/logout", "logout")
        return self.report()

    def report(self) -> bool:
        failed = [r for r in self.results if not r.success]
        total = len(self.results)
        print(f"\n{total - len(failed)}/{total} checks passed")
        for r in failed:
            print(f"  {r.method} {r.endpoint} -> {r.status_code}: {r.error_message}")
        with open("smoke_report.json", "w", encoding="utf-8") as fh:
            json.dump({
                "timestamp": datetime.now().isoformat(),
                "baseUrl": self.base_url,
                "results": [asdict(r) for r in self.results],
            }, fh, ensure_ascii=False, indent=2)
        return not failed


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--base-url", default=BASE_URL)
    parser.add_argument("--username", default=os.getenv("SMOKE_USERNAME", ""))
    parser.add_argument("--password", default=os.getenv("SMOKE_PASSWORD", "password123"))
    args = parser.parse_args()
    if not args.username:
        parser.error("--username (or SMOKE_USERNAME) is required")
    return 0 if SmokeRunner(args.base_url).run(args.username, args.password) else 1


if __name__ == "__main__":
    sys.exit(main())
