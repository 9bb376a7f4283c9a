# tests/conftest.py
import io
import json
import re
import pytest
import requests
import urllib3
from fastapi.testclient import TestClient

from app.main import app
from app.normalizers import RxNormClient, RxNormConfig
from app.normalizers import pipeline
from app.routers.normalize import get_normalizer


BASE_URL = "https://rxnav.test/REST"

# name (lower-case) -> (rxcui, ingredient name or None)
FAKE_VOCAB = {
    "tylenol": ("202433", "acetaminophen"),
    "advil": ("153010", "ibuprofen"),
    "lipitor": ("153165", "atorvastatin"),
    "mystery kit": ("999999", None),  # has an RxCUI but no ingredient
}


# --- Building fake RxNav responses ---
def make_response(status: int = 200, payload=None, reason: str | None = None) -> requests.Response:
    """A real requests.Response streaming a JSON body, no network involved."""
    resp = requests.Response()
    resp.status_code = status
    resp.reason = reason if reason is not None else {
        200: "OK", 400: "Bad Request", 404: "Not Found", 429: "Too Many Requests",
        500: "Internal Server Error", 503: "Service Unavailable",
    }.get(status, "")
    body = payload if isinstance(payload, (bytes, str)) else json.dumps(payload if payload is not None else {})
    data = body.encode() if isinstance(body, str) else body
    resp.headers["Content-Type"] = "application/json"
    resp.raw = urllib3.HTTPResponse(
        body=io.BytesIO(data), headers=dict(resp.headers), status=status, preload_content=False
    )
    return resp


def approximate_payload(term: str, rxcuis: list[str]) -> dict:
    return {
        "approximateGroup": {
            "inputTerm": term,
            "candidate": [
                {"rxcui": r, "rxaui": f"A{r}", "score": str(100 - i), "rank": str(i + 1)}
                for i, r in enumerate(rxcuis)
            ],
        }
    }


def related_payload(rxcui: str, ingredient_names: list[str]) -> dict:
    groups = [{"tty": "BN", "conceptProperties": [{"rxcui": "1", "name": "Brand", "tty": "BN"}]}]
    if ingredient_names:
        groups.append({
            "tty": "IN",
            "conceptProperties": [
                {"rxcui": str(i), "name": n, "tty": "IN", "language": "ENG", "suppress": "N"}
                for i, n in enumerate(ingredient_names)
            ],
        })
    return {"relatedGroup": {"rxcui": rxcui, "conceptGroup": groups}}


def fake_rxnav(url: str, params: dict | None):
    """Answers the two RxNav endpoints from FAKE_VOCAB."""
    if url.endswith("/approximateTerm.json"):
        term = (params or {}).get("term", "")
        hit = FAKE_VOCAB.get(term.lower())
        if not hit:
            # RxNav omits "candidate" entirely when nothing matches
            return make_response(200, {"approximateGroup": {"inputTerm": term}})
        return make_response(200, approximate_payload(term, [hit[0]]))

    m = re.search(r"/rxcui/([^/]+)/related\.json$", url)
    if m:
        rxcui = m.group(1)
        names = [ing for rc, ing in FAKE_VOCAB.values() if rc == rxcui and ing]
        return make_response(200, related_payload(rxcui, names))

    return make_response(404, {})


class FakeSession:
    """
    Stands in for requests.Session.
    Either replays `script` (responses or exceptions, in order) or asks `handler(url, params)`.
    Every call is recorded in `calls`.
    """
    def __init__(self, script=None, handler=None):
        self.script = list(script or [])
        self.handler = handler
        self.calls: list[dict] = []
        self.closed = False

    def get(self, url, params=None, timeout=None, **kwargs):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        if self.handler is not None:
            item = self.handler(url, params)
        else:
            assert self.script, f"unexpected extra request to {url}"
            item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self):
        self.closed = True


# --- Fixtures ---
@pytest.fixture
def rx_config():
    return RxNormConfig(base_url=BASE_URL, timeout_ms=500, retry_attempts=3, retry_delay_ms=1000)


@pytest.fixture
def sleeps():
    """Collects the delays the client would have slept for."""
    return []


@pytest.fixture
def fake_session():
    return FakeSession(handler=fake_rxnav)


@pytest.fixture
def rx_client(rx_config, fake_session, sleeps):
    return RxNormClient(rx_config, session=fake_session, sleep=sleeps.append)


@pytest.fixture
def scripted_client(rx_config, sleeps):
    """Factory: RxNormClient whose HTTP calls replay the given responses/exceptions."""
    def _make(*script, config=None):
        session = FakeSession(script=script)
        return RxNormClient(config or rx_config, session=session, sleep=sleeps.append), session
    return _make


@pytest.fixture
def no_batch_pause(monkeypatch):
    monkeypatch.setattr(pipeline, "BATCH_PAUSE_SECONDS", 0)


# --- Point the API's normalizer dependency at the fake RxNav ---
@pytest.fixture
def client(rx_client, no_batch_pause):
    app.dependency_overrides[get_normalizer] = lambda: rx_client
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
