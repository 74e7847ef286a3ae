from __future__ import annotations

import pytest
import requests

from recruitops.workable.client import WorkableClient, fetch_with_retry
from recruitops.workable.errors import ThrottleError, TransportError
from recruitops.workable.settings import SyncConfig

URL = "https://acme.workable.com/spi/v3/candidates"
HEADERS = {"Authorization": "Bearer token"}


def test_fetch_with_retry_recovers_after_throttling(fake_session, fake_response, sleeps):
    session = fake_session(
        [
            fake_response(status_code=429, text="slow down"),
            fake_response(status_code=429, text="slow down"),
            fake_response(json_data={"candidates": []}),
        ]
    )

    response = fetch_with_retry(session, URL, HEADERS, 3, sleep_fn=sleeps, backoff_seconds=1.0)

    assert response.status_code == 200
    assert len(session.get_calls) == 3
    assert sleeps.calls == [1.0, 2.0]


def test_fetch_with_retry_raises_throttle_error_when_budget_exhausted(fake_session, fake_response, sleeps):
    session = fake_session([fake_response(status_code=429, text="limit")] * 3)

    with pytest.raises(ThrottleError) as excinfo:
        fetch_with_retry(session, URL, HEADERS, 3, sleep_fn=sleeps)

    assert excinfo.value.status_code == 429
    assert len(session.get_calls) == 3
    assert sleeps.calls == [1.0, 2.0]


def test_fetch_with_retry_raises_transport_error_with_status_and_body(fake_session, fake_response, sleeps):
    session = fake_session([fake_response(status_code=500, text="boom " * 200)] * 3)

    with pytest.raises(TransportError) as excinfo:
        fetch_with_retry(session, URL, HEADERS, 3, sleep_fn=sleeps)

    error = excinfo.value
    assert not isinstance(error, ThrottleError)
    assert error.status_code == 500
    assert len(error.body) == 500
    assert str(error).startswith("HTTP 500: boom")
    assert len(session.get_calls) == 3


def test_fetch_with_retry_reraises_network_error_on_last_attempt(fake_session, sleeps):
    session = fake_session([requests.ConnectionError("reset")] * 2)

    with pytest.raises(requests.ConnectionError):
        fetch_with_retry(session, URL, HEADERS, 2, sleep_fn=sleeps)

    assert sleeps.calls == [1.0]


def test_fetch_with_retry_recovers_from_network_error(fake_session, fake_response, sleeps):
    session = fake_session([requests.Timeout("slow"), fake_response(json_data={"ok": True})])

    response = fetch_with_retry(session, URL, HEADERS, 3, sleep_fn=sleeps, backoff_seconds=0.5)

    assert response.json() == {"ok": True}
    assert sleeps.calls == [0.5]


def test_client_sends_paging_params_and_auth_headers(fake_session, fake_response):
    session = fake_session([fake_response(json_data={"candidates": [{"id": "1"}], "paging": {"next": "x"}})])
    client = WorkableClient(
        subdomain="https://Acme.workable.com/",
        api_token="secret",
        session=session,
        include="resume_url",
        sleep_fn=lambda *_: None,
    )

    page = client.fetch_candidates_page(limit=50, offset=100)

    call = session.get_calls[0]
    assert call["url"] == URL
    assert call["params"] == {"limit": 50, "offset": 100, "state": "all", "include": "resume_url"}
    assert call["headers"]["Authorization"] == "Bearer secret"
    assert call["timeout"] == 30.0
    assert page.records == [{"id": "1"}]
    assert page.has_next_pointer
    assert page.has_paging


def test_client_page_without_paging_block(fake_session, fake_response):
    session = fake_session([fake_response(json_data={"candidates": [{"id": "1"}, "junk"]})])
    client = WorkableClient(subdomain="acme", api_token="t", session=session)

    page = client.fetch_candidates_page(limit=10, offset=0)

    assert page.records == [{"id": "1"}, "junk"]
    assert not page.has_paging
    assert not page.has_next_pointer


def test_client_rejects_invalid_json(fake_session, fake_response):
    session = fake_session([fake_response(json_error=ValueError("no json"))])
    client = WorkableClient(subdomain="acme", api_token="t", session=session)

    with pytest.raises(TransportError, match="invalid JSON"):
        client.fetch_candidates_page(limit=10, offset=0)


def test_client_rejects_non_mapping_payload(fake_session, fake_response):
    session = fake_session([fake_response(json_data=[1, 2, 3])])
    client = WorkableClient(subdomain="acme", api_token="t", session=session)

    with pytest.raises(TransportError, match="unexpected payload shape"):
        client.fetch_candidates_page(limit=10, offset=0)


def test_client_from_config_uses_clean_subdomain(sync_config, fake_session):
    client = WorkableClient.from_config(
        sync_config.with_overrides(subdomain="acme.workable.com"), session=fake_session()
    )

    assert client.candidates_url == URL
    assert client.max_retries == sync_config.max_retries


def test_client_from_config_requests_related_records_by_default(app, fake_session, fake_response):
    session = fake_session([fake_response(json_data={"candidates": []})])
    client = WorkableClient.from_config(SyncConfig.from_mapping(app.config), session=session)

    client.fetch_candidates_page(limit=100, offset=0)

    assert session.get_calls[0]["params"]["include"] == "applications,resume,social_profiles"


def test_client_omits_include_when_disabled(app, fake_session, fake_response):
    app.config["WORKABLE_INCLUDE"] = ""
    session = fake_session([fake_response(json_data={"candidates": []})])
    client = WorkableClient.from_config(SyncConfig.from_mapping(app.config), session=session)

    client.fetch_candidates_page(limit=100, offset=0)

    assert "include" not in session.get_calls[0]["params"]


def test_fetch_candidate_returns_detail_record(fake_session, fake_response):
    session = fake_session([fake_response(json_data={"candidate": {"id": "c1", "summary": "Builds APIs"}})])
    client = WorkableClient(subdomain="acme", api_token="t", session=session)

    detail = client.fetch_candidate("c1")

    assert detail == {"id": "c1", "summary": "Builds APIs"}
    assert session.get_calls[0]["url"] == f"{URL}/c1"
    assert session.get_calls[0]["params"] == {}


def test_fetch_candidate_rejects_payload_without_candidate(fake_session, fake_response):
    session = fake_session([fake_response(json_data={"error": "gone"})])
    client = WorkableClient(subdomain="acme", api_token="t", session=session)

    with pytest.raises(TransportError, match="unexpected payload shape"):
        client.fetch_candidate("c1")
