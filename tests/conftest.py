"""
Pytest configuration and fixtures.

`FakeHTTP` stands in for the requests.Session passed to the tools: responses
are queued per (method, url) and every call is recorded for assertions.
"""
import json
from typing import Any, Dict, List, Optional, Tuple

import pytest
import requests

import env


class FakeResponse:
    def __init__(self, status_code: int = 200, json_body: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        if text is None:
            text = json.dumps(json_body) if json_body is not None else ""
        self.text = text

    def json(self):
        return json.loads(self.text)


class FakeHTTP:
    def __init__(self):
        self._queue: Dict[Tuple[str, str], List[Any]] = {}
        self.calls: List[Dict[str, Any]] = []

    def add(self, method: str, url: str, status: int = 200, json: Any = None, text: Optional[str] = None):
        self._queue.setdefault((method.upper(), url), []).append(FakeResponse(status, json, text))

    def add_exception(self, method: str, url: str, exc: Exception):
        self._queue.setdefault((method.upper(), url), []).append(exc)

    def _request(self, method: str, url: str, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        entries = self._queue.get((method, url))
        if not entries:
            raise AssertionError(f"No mocked response for {method} {url}. Available: {list(self._queue)}")
        entry = entries.pop(0) if len(entries) > 1 else entries[0]
        if isinstance(entry, Exception):
            raise entry
        return entry

    def get(self, url, **kwargs):
        return self._request("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._request("POST", url, **kwargs)

    def calls_to(self, url: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["url"] == url]


@pytest.fixture
def http():
    return FakeHTTP()


@pytest.fixture
def mode(monkeypatch, tmp_path):
    monkeypatch.setenv("MYENV", "local")
    monkeypatch.setenv("ISSUER_BASE", "http://issuer.test")
    monkeypatch.setenv("VERIFIER_BASE", "http://verifier.test")
    monkeypatch.setenv("STANDARD_VERSION", "draft13")
    monkeypatch.setenv("OFFER_RETRY_DELAY", "0")
    monkeypatch.setenv("RUN_LOG_DIR", str(tmp_path / "runs"))
    monkeypatch.setenv("OFFER_FILE", str(tmp_path / "credential-offer.json"))
    monkeypatch.setenv("PKI_FILE", str(tmp_path / "mdoc-pki-setup.json"))
    monkeypatch.delenv("TX_CODE", raising=False)
    monkeypatch.setattr(env, "extract_ip", lambda: "127.0.0.1")
    return env.currentMode("local")


@pytest.fixture
def no_sleep():
    delays = []
    return delays.append, delays


@pytest.fixture
def connection_error():
    return requests.ConnectionError("connection refused")


@pytest.fixture
def passport():
    return {
        "data": {
            "org.iso.18013.5.1": {
                "family_name": "DOE",
                "given_name": "ALICE",
                "birth_date": "1990-01-01",
                "document_number": "X1234567",
                "issuing_country": "US",
                "expiry_date": "2031-01-01",
            },
            "com.yourcompany.webauth": {
                "passport_verification_level": "nfc_chip",
            },
        }
    }
