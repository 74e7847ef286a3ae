from __future__ import annotations

from recruitops.workable.normalize import CanonicalCandidate
from recruitops.workable.stats import aggregate_candidates, count_by, percentage, preview_stats, top_n


def _candidate(index: int, **fields) -> CanonicalCandidate:
    return CanonicalCandidate(external_id=str(index), name=f"C{index}", **fields)


def test_percentage_rounds_half_up_and_handles_zero_total():
    assert percentage(0, 0) == 0
    assert percentage(5, 0) == 0
    assert percentage(1, 8) == 13  # 12.5
    assert percentage(1, 3) == 33
    assert percentage(2, 3) == 67
    assert percentage(3, 3) == 100


def test_top_n_is_case_insensitive_and_keeps_first_seen_order_on_ties():
    values = ["Python", " python", "SQL", "Go", "go", "Rust", "", "sql"]

    assert top_n(values, 2) == {"python": 2, "sql": 2}
    assert list(top_n(values, 10)) == ["python", "sql", "go", "rust"]
    assert top_n(values, 0) == {}


def test_count_by_uses_unknown_for_missing():
    assert count_by(["active", None, "active", ""]) == {"active": 2, "unknown": 2}


def test_aggregate_empty_set_is_all_zero():
    stats = aggregate_candidates([])
    payload = stats.as_dict()

    assert payload["overview"]["total_candidates"] == 0
    assert set(payload["percentages"].values()) == {0}
    assert payload["top_skills"] == {}
    assert payload["recent_candidates"] == []
    assert payload["top_insights"] == {
        "most_common_skill": None,
        "top_location": None,
        "active_percentage": 0,
        "data_quality_score": 0,
    }


def test_aggregate_computes_coverage_breakdowns_and_insights():
    candidates = [
        _candidate(1, email="a@x", phone="1", skills=("Python",), location="Berlin", upstream_state="active",
                   experience_level="senior", created_at="2024-03-01T00:00:00Z", application_count=2),
        _candidate(2, email="b@x", skills=("python", "SQL"), location="berlin", upstream_state="active",
                   created_at="2024-04-01T00:00:00Z"),
        _candidate(3, location="Paris", upstream_state="archived", created_at="2024-01-01T00:00:00Z"),
        _candidate(4, upstream_state=None),
    ]

    payload = aggregate_candidates(candidates, top_skills=1, top_locations=5).as_dict()

    assert payload["data_quality"]["with_email"] == 2
    assert payload["data_quality"]["with_applications"] == 1
    assert payload["percentages"] == {
        "email_coverage": 50,
        "phone_coverage": 25,
        "resume_coverage": 0,
        "linkedin_coverage": 0,
        "skills_coverage": 50,
        "active_candidates": 50,
    }
    assert payload["top_skills"] == {"python": 2}
    assert payload["top_locations"] == {"berlin": 2, "paris": 1}
    assert payload["candidate_states"] == {"active": 2, "archived": 1, "unknown": 1}
    assert payload["experience_levels"] == {"senior": 1, "unknown": 3}
    assert [entry["id"] for entry in payload["recent_candidates"]] == ["2", "1", "3", "4"]
    assert payload["top_insights"] == {
        "most_common_skill": "python",
        "top_location": "berlin",
        "active_percentage": 50,
        "data_quality_score": 42,  # (50 + 25 + 50) / 3 = 41.67
    }
    for value in payload["percentages"].values():
        assert isinstance(value, int) and 0 <= value <= 100


def test_preview_stats_counts():
    candidates = [_candidate(1, email="a", skills=("x",), upstream_state="active"), _candidate(2)]

    assert preview_stats(candidates) == {"total": 2, "with_email": 1, "with_skills": 1, "active": 1}
