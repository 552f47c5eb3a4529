from datetime import datetime, timezone

import pytest

pytest.importorskip("fastapi")
from fastapi import HTTPException
from fastapi.testclient import TestClient

import poolmatch.deps as deps
import poolmatch.main as m
from poolmatch.domain import Answer, MatchingPool, PoolMember, Question
from poolmatch.routes import admin as admin_routes
from poolmatch.services.compatibility import CompatibilityScorer
from poolmatch.services.pool_matching import PoolMatchingEngine
from poolmatch.stores import InMemoryAnswerStore, InMemoryPoolStore

TOKEN = "s3cret"
NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


def _store(member_ids="abcd", match_size=2):
    store = InMemoryPoolStore(clock=lambda: NOW)
    store.create_pool(MatchingPool(id="p1", name="Runners", frequency="weekly", match_size=match_size, next_match_on=NOW))
    for mid in member_ids:
        store.add_member(PoolMember(id="", pool_id="p1", member_id=mid, user_id=f"u-{mid}"))
    return store


@pytest.fixture()
def client(monkeypatch):
    monkeypatch.setattr(deps, "ADMIN_TOKEN", TOKEN)
    return TestClient(m.app)


def _use_store(monkeypatch, store):
    monkeypatch.setattr(admin_routes, "get_engine", lambda: PoolMatchingEngine(store))


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_admin_routes_require_token(client, monkeypatch):
    _use_store(monkeypatch, _store())
    assert client.post("/admin/pools/p1/run-matching").status_code == 401
    assert client.post("/admin/pools/p1/run-matching", headers={"X-Admin-Token": "wrong"}).status_code == 401


def test_empty_admin_token_rejects_everything(monkeypatch):
    monkeypatch.setattr(deps, "ADMIN_TOKEN", "")
    _use_store(monkeypatch, _store())
    resp = TestClient(m.app).post("/admin/pools/p1/run-matching", headers={"X-Admin-Token": ""})
    assert resp.status_code == 401


def test_run_matching(client, monkeypatch):
    store = _store("abcde")
    _use_store(monkeypatch, store)
    resp = client.post("/admin/pools/p1/run-matching", headers={"X-Admin-Token": TOKEN}, json={"seed": 7})
    assert resp.status_code == 200
    body = resp.json()
    assert body["pool_id"] == "p1"
    assert body["pool_name"] == "Runners"
    assert body["match_count"] == 2
    assert len(body["matches"]) == 2
    assert len(body["unmatched_member_ids"]) == 1
    assert body["lookup_failures"] == 0
    assert len(store.get_matches_by_pool("p1", 10)) == 2


def test_run_matching_error_mapping(client, monkeypatch):
    _use_store(monkeypatch, _store("ab", match_size=3))
    headers = {"X-Admin-Token": TOKEN}
    assert client.post("/admin/pools/missing/run-matching", headers=headers).status_code == 404
    assert client.post("/admin/pools/p1/run-matching", headers=headers).status_code == 409


def test_rerun_in_same_week_conflicts(client, monkeypatch):
    store = _store()
    _use_store(monkeypatch, store)
    headers = {"X-Admin-Token": TOKEN}
    assert client.post("/admin/pools/p1/run-matching", headers=headers).status_code == 200
    assert client.post("/admin/pools/p1/run-matching", headers=headers).status_code == 409


def test_run_matching_rejects_bad_timeout(client, monkeypatch):
    _use_store(monkeypatch, _store())
    resp = client.post("/admin/pools/p1/run-matching", headers={"X-Admin-Token": TOKEN}, json={"timeout_seconds": -1})
    assert resp.status_code == 422


def test_compatibility_breakdown(client, monkeypatch):
    answers = InMemoryAnswerStore()
    answers.add_question(Question(id="q1", text="Beach or mountains?", category="travel"))
    answers.submit_answer("u1", "q1", Answer(selected_option="beach", acceptable_options={"beach"}, is_dealbreaker=True))
    answers.submit_answer("u2", "q1", Answer(selected_option="mountains", acceptable_options={"beach", "mountains"}, yikes_options={"beach"}))
    monkeypatch.setattr(admin_routes, "get_scorer", lambda: CompatibilityScorer(answers, answers))

    resp = client.get("/admin/compatibility/u1/u2", headers={"X-Admin-Token": TOKEN})
    assert resp.status_code == 200
    body = resp.json()
    assert body["compatibility"]["deal_breaker"] is True
    assert body["compatibility"]["score"] == 0.0
    assert body["category_scores"] == {"travel": 50.0}
    assert body["deal_breakers"][0]["question_text"] == "Beach or mountains?"
    assert body["yikes"] == {"has_yikes": True, "yikes_count": 1, "categories": ["travel"], "severity": "mild"}


def test_validate_admin_token():
    deps.validate_admin_token("abc", "abc")
    for token, expected in (("abd", "abc"), ("", "abc"), (None, "abc"), ("abc", ""), ("abc", None)):
        with pytest.raises(HTTPException) as exc:
            deps.validate_admin_token(token, expected)
        assert exc.value.status_code == 401
