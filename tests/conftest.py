import json
import time
from datetime import datetime

import pytest
import requests

from damage_capture.core.ledger import RecordLedger
from damage_capture.core.shift_classifier import ShiftClassifier
from damage_capture.network.submission_client import SubmissionClient
from damage_capture.storage.backends import MemoryStore
from damage_capture.storage.session_store import SessionStore

ENDPOINT = "https://records.example.com/exec"


def at(hour, minute=0, second=0, day=15):
    """A local timestamp on 2024-03-<day>."""
    return datetime(2024, 3, day, hour, minute, second)


def make_response(status=200, body=None, content_type="application/json"):
    response = requests.Response()
    response.status_code = status
    response.reason = "OK" if status < 400 else "Internal Server Error"
    response.encoding = "utf-8"
    response.headers["Content-Type"] = content_type
    if body is None:
        body = {"status": "ok"}
    if not isinstance(body, str):
        body = json.dumps(body)
    response._content = body.encode("utf-8")
    return response


@pytest.fixture
def classifier():
    return ShiftClassifier(early_start_hour=4, late_start_hour=13,
                           early_finalize_hour=12, late_finalize_hour=21,
                           night_shift="late")


@pytest.fixture
def ledger(classifier):
    return RecordLedger(classifier)


@pytest.fixture
def backend():
    return MemoryStore()


@pytest.fixture
def store(backend):
    return SessionStore(backend, expiry_hour=23, expiry_minute=59)


@pytest.fixture
def client():
    return SubmissionClient(ENDPOINT, max_retries=3, retry_backoff_unit=1.0,
                            send_timeout=15.0, probe_timeout=5.0, source_tag="test")


@pytest.fixture
def sleeps(monkeypatch):
    """Capture backoff waits instead of sleeping."""
    recorded = []
    monkeypatch.setattr(time, "sleep", recorded.append)
    return recorded
