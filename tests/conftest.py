import pytest

from recitation.results import ErrorKind, Result
from recitation.store import SqliteStore


class FlakyStore(SqliteStore):
    """SqliteStore that reports the named calls as unreachable."""

    def __init__(self, db_path: str):
        super().__init__(db_path)
        self.failing = set()

    def _down(self, name):
        if name in self.failing:
            return Result.failure(ErrorKind.COLLABORATOR_FAILURE, f"{name}: store unreachable")
        return None

    def fetch_contestants(self):
        failure = self._down("fetch_contestants")
        if failure is not None:
            return failure
        return super().fetch_contestants()

    def fetch_grades(self, contestant_id):
        failure = self._down("fetch_grades")
        if failure is not None:
            return failure
        return super().fetch_grades(contestant_id)

    def submit_grade(self, contestant_id, question_number, memorization, performance, tajweed):
        failure = self._down("submit_grade")
        if failure is not None:
            return failure
        return super().submit_grade(
            contestant_id, question_number, memorization, performance, tajweed
        )

    def finalize_contestant(self, contestant_id):
        failure = self._down("finalize_contestant")
        if failure is not None:
            return failure
        return super().finalize_contestant(contestant_id)

    def reset_contestant_grades(self, contestant_id):
        failure = self._down("reset_contestant_grades")
        if failure is not None:
            return failure
        return super().reset_contestant_grades(contestant_id)


@pytest.fixture
def store(tmp_path):
    s = FlakyStore(str(tmp_path / "recitation.sqlite"))
    s.init_db()
    return s


@pytest.fixture
def seeded(store):
    """
    Committee 1: a (2 questions), b (10 questions, tajweed), c (15 questions,
    tajweed), and e, already finalized. Committee 2: d.
    """
    store.add_committee("1", "pw1")
    store.add_committee("2", "pw2")
    ids = {}
    for key, fields in [
        ("a", {"name": "أحمد علي حسن", "age": "10", "parts_count": "0", "committee_id": "1"}),
        ("b", {"name": "محمد سالم", "age": "13", "parts_count": "5", "committee_id": "1"}),
        ("d", {"name": "يوسف خالد", "age": "9", "parts_count": "1", "committee_id": "2"}),
        ("c", {"name": "عمر فاروق", "age": "14", "parts_count": "15", "committee_id": "1"}),
        ("e", {"name": "زيد ناصر", "age": "11", "parts_count": "2", "committee_id": "1"}),
    ]:
        ids[key] = store.add_contestant(fields).value
    assert store.finalize_contestant(ids["e"]).ok
    return ids
