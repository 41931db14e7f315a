"""Smoke tests for the HTTP surface of the store."""

import pytest
from fastapi.testclient import TestClient

from recitation import main


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(main.store, "db_path", str(tmp_path / "api.sqlite"))
    with TestClient(main.app) as c:
        yield c


def test_grading_flow(client):
    main.store.add_committee("1", "pw")
    assert client.get("/committees").json() == [{"committee_id": "1"}]

    r = client.post("/contestants", data={"name": "أحمد", "age": "14", "parts_count": "1", "committee_id": "1"})
    assert r.status_code == 200, r.text
    cid = r.json()["id"]

    for q, memo in [(1, "10"), (2, "٨")]:
        r = client.post(f"/contestants/{cid}/grades", data={
            "question_number": q, "memorization": memo, "performance": "1", "tajweed": "2",
        })
        assert r.status_code == 200, r.text

    grades = client.get(f"/contestants/{cid}/grades").json()
    assert [g["Memorization"] for g in grades] == [10, 8]

    r = client.post(f"/contestants/{cid}/finalize")
    assert r.status_code == 200
    assert r.json()["total_score"] == 24

    assert client.post(f"/contestants/{cid}/finalize").status_code == 409

    results = client.get("/results", params={"submitted": "yes"}).json()
    assert [row["Id"] for row in results] == [cid]
    assert results[0]["StageTotal"] == 26

    r = client.post(f"/contestants/{cid}/reset")
    assert r.json()["removed"] == 2
    assert client.get("/results", params={"submitted": "yes"}).json() == []


def test_update_contestant(client):
    cid = client.post("/contestants", data={"name": "سالم"}).json()["id"]
    r = client.post(f"/contestants/{cid}/update", data={"field": "parts_count", "value": "3"})
    assert r.status_code == 200
    assert client.get("/contestants").json()[0]["parts_count"] == 3
    r = client.post(f"/contestants/{cid}/update", data={"field": "submitted", "value": "1"})
    assert r.status_code == 400


def test_errors(client):
    assert client.post("/contestants", data={"name": "  "}).status_code == 400
    assert client.post("/contestants/404/finalize").status_code == 404
    assert client.post("/contestants/404/reset").status_code == 404
    r = client.post("/contestants/404/grades", data={"question_number": 1})
    assert r.status_code == 404


def test_ranked_results(client):
    ids = []
    for name, memo in [("أ", "5"), ("ب", "10"), ("ج", "0")]:
        cid = client.post("/contestants", data={"name": name, "age": "10", "parts_count": "1", "committee_id": "1"}).json()["id"]
        client.post(f"/contestants/{cid}/grades", data={"question_number": 1, "memorization": memo})
        ids.append(cid)
    for cid in ids[:2]:
        client.post(f"/contestants/{cid}/finalize")

    ranked = client.get("/results", params={"ranked": "yes"}).json()
    assert [row["Id"] for row in ranked] == [ids[1], ids[0]]
    assert [row["Rank"] for row in ranked] == [1, 2]

    unranked = client.get("/results").json()
    assert [row["Id"] for row in unranked] == ids
    assert "Rank" not in unranked[0]
