"""Tests for the sqlite persistence collaborator."""

from recitation.results import ErrorKind
from recitation.store import SqliteStore, sha256


def _contestant(store, contestant_id):
    return next(c for c in store.fetch_contestants().value if c.id == contestant_id)


class TestCommittees:
    def test_password_is_hashed(self, store):
        store.add_committee("3", "secret")
        committees = store.fetch_committees().value
        assert [c.committee_id for c in committees] == ["3"]
        assert committees[0].password_hash == sha256("secret")
        assert committees[0].password_hash != "secret"

    def test_adding_again_replaces_password(self, store):
        store.add_committee("3", "old")
        store.add_committee("3", "new")
        committees = store.fetch_committees().value
        assert len(committees) == 1
        assert committees[0].password_hash == sha256("new")


class TestContestants:
    def test_add_normalizes_numbers(self, store):
        resp = store.add_contestant({"name": " سارة ", "age": "١٣", "parts_count": "4 أجزاء", "committee_id": 1})
        assert resp.ok
        c = _contestant(store, resp.value)
        assert c.name == "سارة"
        assert c.age == 13
        assert c.parts_count == 4
        assert c.committee_id == "1"
        assert c.submitted is False
        assert c.total_score is None

    def test_discovery_order(self, seeded, store):
        assert [c.id for c in store.fetch_contestants().value] == sorted(seeded.values())

    def test_add_rejects_unknown_field(self, store):
        resp = store.add_contestant({"name": "x", "submitted": 1})
        assert resp.error is ErrorKind.INVALID_INPUT

    def test_update(self, seeded, store):
        assert store.update_contestant(seeded["a"], "parts_count", "6").ok
        assert _contestant(store, seeded["a"]).stage_config.question_count == 12

    def test_update_unknown_field(self, seeded, store):
        resp = store.update_contestant(seeded["a"], "total_score", "100")
        assert resp.error is ErrorKind.INVALID_INPUT

    def test_update_unknown_contestant(self, store):
        resp = store.update_contestant(404, "name", "x")
        assert resp.error is ErrorKind.NOT_FOUND


class TestGrades:
    def test_submit_is_upsert(self, seeded, store):
        store.submit_grade(seeded["a"], 1, 5, 1, 0)
        store.submit_grade(seeded["a"], 1, "9", "0.5", 0)
        grades = store.fetch_grades(seeded["a"]).value
        assert len(grades) == 1
        assert (grades[0].memorization, grades[0].performance) == (9, 0.5)

    def test_submit_unknown_contestant(self, store):
        resp = store.submit_grade(404, 1, 5, 1, 0)
        assert resp.error is ErrorKind.NOT_FOUND


class TestLifecycle:
    def test_finalize_computes_clamped_total(self, seeded, store):
        store.submit_grade(seeded["a"], 1, 999, 1, 2)
        store.submit_grade(seeded["a"], 2, 4, 1, 2)
        resp = store.finalize_contestant(seeded["a"])
        # memorization capped at 20, performance 2, no tajweed under 13
        assert resp.value == 22
        c = _contestant(store, seeded["a"])
        assert c.submitted is True
        assert c.total_score == 22
        assert c.submitted_at

    def test_finalize_twice(self, seeded, store):
        resp = store.finalize_contestant(seeded["e"])
        assert resp.error is ErrorKind.ALREADY_FINALIZED

    def test_finalize_unknown(self, store):
        assert store.finalize_contestant(404).error is ErrorKind.NOT_FOUND

    def test_reset(self, seeded, store):
        store.submit_grade(seeded["e"], 1, 5, 1, 0)
        store.submit_grade(seeded["e"], 2, 5, 1, 0)
        resp = store.reset_contestant_grades(seeded["e"])
        assert resp.value == 2
        assert store.fetch_grades(seeded["e"]).value == []
        c = _contestant(store, seeded["e"])
        assert c.submitted is False
        assert c.total_score is None
        assert c.submitted_at is None

    def test_reset_without_grades(self, seeded, store):
        assert store.reset_contestant_grades(seeded["b"]).value == 0

    def test_reset_unknown(self, store):
        assert store.reset_contestant_grades(404).error is ErrorKind.NOT_FOUND


def test_unreachable_database(tmp_path):
    s = SqliteStore(str(tmp_path / "missing" / "dir" / "db.sqlite"))
    resp = s.fetch_contestants()
    assert not resp.ok
    assert resp.error is ErrorKind.COLLABORATOR_FAILURE


def test_outage_is_reported_not_passed_through(seeded, store):
    store.failing.update({"fetch_contestants", "finalize_contestant"})
    assert store.fetch_contestants().error is ErrorKind.COLLABORATOR_FAILURE
    assert store.finalize_contestant(seeded["a"]).error is ErrorKind.COLLABORATOR_FAILURE
    store.failing.clear()
    a = next(c for c in store.fetch_contestants().value if c.id == seeded["a"])
    assert a.submitted is False
