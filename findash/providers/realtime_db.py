from __future__ import annotations

import os
from typing import Any, Optional

import requests


FIREBASE_DATABASE_URL = os.environ.get("FIREBASE_DATABASE_URL")
REALTIME_DB_TIMEOUT_SECONDS = float(os.environ.get("REALTIME_DB_TIMEOUT_SECONDS", "30"))


class RealtimeDatabase:
    """Read JSON documents by path from the realtime database REST API."""

    def __init__(self, base_url: Optional[str] = None, session: Optional[requests.Session] = None) -> None:
        base_url = base_url or FIREBASE_DATABASE_URL
        if not base_url:
            raise RuntimeError("FIREBASE_DATABASE_URL is required to read fundamentals")
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def get(self, path: str) -> Any:
        """Return the document stored at ``path`` or ``None`` when it does not exist."""

        url = f"{self.base_url}/{path.strip('/')}.json"
        resp = self.session.get(url, timeout=REALTIME_DB_TIMEOUT_SECONDS)
        resp.raise_for_status()
        return resp.json()

    def get_annual(self, symbol: str) -> Any:
        return self.get(f"year/{symbol}")

    def get_quarterly(self, symbol: str) -> Any:
        return self.get(f"quarter/{symbol}")

    def get_dividends(self, symbol: str) -> Any:
        return self.get(f"dividends/{symbol}")

    def get_earnings(self, symbol: str) -> Any:
        return self.get(f"earningsQuarter/{symbol}")
