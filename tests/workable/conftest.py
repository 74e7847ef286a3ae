from __future__ import annotations

from typing import Any, Callable, Dict, List

import pytest

from recruitops.workable.settings import SyncConfig


class FakeResponse:
    def __init__(self, *, status_code: int = 200, json_data: Any = None, text: str = "", json_error=None):
        self.status_code = status_code
        self._json_data = {} if json_data is None else json_data
        self._json_error = json_error
        self.text = text
        self.ok = 200 <= status_code < 300

    def json(self):
        if self._json_error is not None:
            raise self._json_error
        return self._json_data


class FakeSession:
    """Replays queued responses (or raises queued exceptions) for ``get`` calls."""

    def __init__(self, responses=None, handler: Callable[[str, Dict[str, Any]], Any] | None = None):
        self.responses = list(responses or [])
        self.handler = handler
        self.get_calls: List[Dict[str, Any]] = []

    def get(self, url, headers=None, params=None, timeout=None):
        self.get_calls.append({"url": url, "headers": headers, "params": dict(params or {}), "timeout": timeout})
        if self.handler is not None:
            item = self.handler(url, dict(params or {}))
        else:
            item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeWorkableApi(FakeSession):
    """
    Serves ``candidates`` through ``offset``/``limit`` pages.

    ``failures`` maps an offset to a list of responses/exceptions returned
    before the real page is served. With ``with_paging`` the payload carries a
    ``paging.next`` pointer while more records remain. ``details`` maps a
    candidate id to the detail record (or a response/exception) served for
    ``GET /candidates/{id}``; unknown ids get a 404.
    """

    def __init__(self, candidates, *, failures=None, with_paging: bool = False, details=None):
        super().__init__(handler=self._serve)
        self.candidates = list(candidates)
        self.failures = {offset: list(items) for offset, items in (failures or {}).items()}
        self.with_paging = with_paging
        self.details = dict(details or {})

    @property
    def detail_calls(self) -> List[str]:
        return [call["url"].rsplit("/", 1)[1] for call in self.get_calls if not call["url"].endswith("/candidates")]

    def _serve(self, url, params):
        if not url.endswith("/candidates"):
            return self._serve_detail(url.rsplit("/", 1)[1])
        offset = int(params.get("offset", 0))
        limit = int(params.get("limit", 100))
        pending = self.failures.get(offset)
        if pending:
            return pending.pop(0)
        chunk = self.candidates[offset : offset + limit]
        payload: Dict[str, Any] = {"candidates": chunk}
        if self.with_paging:
            more = offset + limit < len(self.candidates)
            payload["paging"] = {"next": f"{url}?offset={offset + limit}"} if more else {}
        return FakeResponse(json_data=payload)

    def _serve_detail(self, candidate_id):
        detail = self.details.get(candidate_id)
        if detail is None:
            return FakeResponse(status_code=404, text="Not found")
        if isinstance(detail, (FakeResponse, Exception)):
            return detail
        return FakeResponse(json_data={"candidate": detail})


def build_raw_candidate(index: int, **overrides) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "id": f"cand-{index:04d}",
        "name": f"Candidate {index}",
        "email": f"candidate{index}@example.com" if index % 2 == 0 else None,
        "phone": "+1 555 0100" if index % 3 == 0 else None,
        "state": "active" if index % 4 != 3 else "archived",
        "skills": ["Python", "SQL"] if index % 5 else [],
        "address": {"city": "Berlin", "country": "Germany"} if index % 2 else None,
        "created_at": f"2024-01-{(index % 28) + 1:02d}T10:00:00Z",
        "applications": [{"job": {"title": "Backend Engineer"}}],
    }
    record.update(overrides)
    return record


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def fake_workable_api():
    return FakeWorkableApi


@pytest.fixture
def raw_candidate():
    return build_raw_candidate


@pytest.fixture
def raw_candidates():
    def _build(count: int, start: int = 0):
        return [build_raw_candidate(index) for index in range(start, start + count)]

    return _build


@pytest.fixture
def sync_config(app) -> SyncConfig:
    return SyncConfig.from_mapping(app.config).with_overrides(
        page_delay_seconds=0.0,
        retry_backoff_seconds=0.0,
        write_delay_seconds=0.0,
    )


@pytest.fixture
def sleeps():
    """Collects requested sleep durations instead of sleeping."""

    calls: List[float] = []

    def _sleep(seconds):
        calls.append(seconds)

    _sleep.calls = calls  # type: ignore[attr-defined]
    return _sleep
