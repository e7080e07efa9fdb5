from __future__ import annotations

import pytest
from fakes import FakeIdentityProvider, FakeProgressStore, scores, tasks_on_days

from progress_api.api.progress import get_engine
from progress_api.main import app
from progress_api.services.aggregation import ProgressAggregationEngine
from progress_api.store.records import LearnerIdentity, RecordCategory

ORG = "ORG1"


@pytest.fixture
def store(now):
    return FakeProgressStore(
        members={ORG: ["user_anna", "user_ben", "user_cleo"]},
        records={
            RecordCategory.TASKS: tasks_on_days("user_anna", now, [0, 1, 2, 3, 4, 5, 6])
            + tasks_on_days("user_ben", now, [12]),
            RecordCategory.SPEAKING: scores("user_anna", RecordCategory.SPEAKING, [92, 88], now)
            + scores("user_ben", RecordCategory.SPEAKING, [35], now),
            RecordCategory.READING: scores("user_cleo", RecordCategory.READING, [64, 58], now),
        },
    )


@pytest.fixture
def use_store(now):
    def _install(store, identities=None):
        engine = ProgressAggregationEngine(
            store,
            FakeIdentityProvider(identities),
            timezone_name="UTC",
            clock=lambda: now,
        )
        app.dependency_overrides[get_engine] = lambda: engine
        return engine

    return _install


def test_progress_overview_contract(client, store, use_store):
    use_store(store, {"user_anna": LearnerIdentity(learner_id="user_anna", name="Anna Keller")})
    resp = client.post("/teacher-dashboard/student-progress-overview", json={"organizationCode": ORG})
    assert resp.status_code == 200
    body = resp.json()
    assert set(body) == {"students", "summary", "filterCounts"}
    assert body["summary"]["totalStudents"] == 3
    assert body["summary"]["atRiskStudents"] == 1
    assert len(body["filterCounts"]) == 21

    card = body["students"][0]
    assert card["userId"] == "user_anna"
    assert card["name"] == "Anna Keller"
    for key in (
        "overallProgress",
        "currentStreak",
        "longestStreak",
        "weeklyActivityMap",
        "engagementScore",
        "atRiskOfDropout",
        "predictedCompletionWeeks",
        "recommendedFocus",
        "achievements",
        "recentActivities",
    ):
        assert key in card
    assert set(card["skills"]) == {"speaking", "listening", "reading", "writing", "grammar", "pronunciation", "vocabulary"}
    assert card["currentStreak"] == 7
    assert card["achievements"][0]["name"] == "Week Streak"


def test_progress_overview_accepts_snake_case_and_filters(client, store, use_store):
    use_store(store)
    resp = client.post(
        "/teacher-dashboard/student-progress-overview",
        json={"organization_code": ORG, "filters": ["at-risk"], "sort_by": "name"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert [c["userId"] for c in body["students"]] == ["user_ben"]
    assert body["filterCounts"]["at-risk"] == 1
    assert body["summary"]["totalStudents"] == 3


def test_progress_overview_search(client, store, use_store):
    use_store(store)
    resp = client.post(
        "/teacher-dashboard/student-progress-overview",
        json={"organizationCode": ORG, "search": "cleo"},
    )
    assert resp.status_code == 200
    assert [c["userId"] for c in resp.json()["students"]] == ["user_cleo"]


def test_unknown_filter_is_rejected(client, store, use_store):
    use_store(store)
    resp = client.post(
        "/teacher-dashboard/student-progress-overview",
        json={"organizationCode": ORG, "filters": ["top-secret"]},
    )
    assert resp.status_code == 422
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "validation_error"


def test_missing_organization_code_is_rejected(client, store, use_store):
    use_store(store)
    resp = client.post("/teacher-dashboard/student-progress-overview", json={"organizationCode": ""})
    assert resp.status_code == 422


def test_membership_outage_returns_error_envelope(client, use_store):
    use_store(FakeProgressStore(fail_members=True))
    resp = client.post(
        "/teacher-dashboard/student-progress-overview",
        json={"organizationCode": ORG},
        headers={"x-request-id": "req-123"},
    )
    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "progress_unavailable"
    assert body["error"]["message"] == "Failed to load progress data"
    assert body["error"]["request_id"] == "req-123"
    assert resp.headers["x-request-id"] == "req-123"


def test_degraded_category_still_returns_cards(client, store, use_store):
    store.failing = {RecordCategory.TASKS}
    use_store(store)
    resp = client.post("/teacher-dashboard/student-progress-overview", json={"organizationCode": ORG})
    assert resp.status_code == 200
    students = resp.json()["students"]
    assert len(students) == 3
    assert all(c["currentStreak"] == 0 for c in students)

    metrics = client.get("/metrics/app").json()
    assert metrics["degraded_fetches"] == {"tasks": 1}


def test_student_card(client, store, use_store):
    use_store(store)
    resp = client.get(f"/teacher-dashboard/organizations/{ORG}/students/user_ben")
    assert resp.status_code == 200
    card = resp.json()
    assert card["userId"] == "user_ben"
    assert card["name"] == "Student ben"
    assert card["inactivityDays"] == 12
    assert card["atRiskOfDropout"] is True


def test_student_card_not_in_organization(client, store, use_store):
    use_store(store)
    resp = client.get(f"/teacher-dashboard/organizations/{ORG}/students/user_nobody")
    assert resp.status_code == 404
    body = resp.json()
    assert body["error"]["code"] == "http_error"
    assert "Student not found" in body["error"]["message"]


def test_skill_scores_dashboard(client, store, use_store):
    use_store(store)
    resp = client.post("/teacher-dashboard/skill-scores", json={"organizationCode": ORG, "skill": "speaking"})
    assert resp.status_code == 200
    entries = {e["userId"]: e for e in resp.json()}
    assert set(entries) == {"user_anna", "user_ben"}
    assert entries["user_anna"]["totalSessions"] == 2
    assert entries["user_anna"]["averageScore"] == 90
    assert entries["user_ben"]["scoreDistribution"]["21-40"] == 1


def test_skill_scores_rejects_grammar(client, store, use_store):
    use_store(store)
    resp = client.post("/teacher-dashboard/skill-scores", json={"organizationCode": ORG, "skill": "grammar"})
    assert resp.status_code == 422


def test_health_and_metrics(client, store, use_store):
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    assert health.json()["identity_enrichment"] is False

    use_store(store)
    client.post("/teacher-dashboard/student-progress-overview", json={"organizationCode": ORG})
    client.get(f"/teacher-dashboard/organizations/{ORG}/students/user_nobody")
    metrics = client.get("/metrics/app").json()
    assert metrics["request_count"] == 2
    assert metrics["error_count"] == 1
    assert metrics["latency_ms_p50"] is not None
    assert metrics["cards_built"] == 3
    overview = metrics["routes"]["/teacher-dashboard/student-progress-overview"]
    assert overview["request_count"] == 1
    assert overview["error_count"] == 0
    student = metrics["routes"]["/teacher-dashboard/organizations/{organization_code}/students/{learner_id}"]
    assert student["error_count"] == 1
