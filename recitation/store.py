from __future__ import annotations

import hashlib
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List

from .log import setup_logger
from .models import Committee, Contestant
from .results import ErrorKind, Result
from .scoring import GradeEntry, load_grade_set, to_number

logger = setup_logger("recitation.store")

# Contestant fields an administrator may edit, and whether they are numeric
EDITABLE_FIELDS: Dict[str, bool] = {
    "name": False,
    "age": True,
    "parts_count": True,
    "parts_numbers": False,
    "department": False,
    "committee_id": False,
    "grade": False,
    "award": True,
}


def sha256(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


class Collaborator(ABC):
    """
    Remote data store the evaluation engine talks to.

    Every call returns a Result; a failed or unreachable store is reported as
    ErrorKind.COLLABORATOR_FAILURE rather than raised.
    """

    @abstractmethod
    def fetch_committees(self) -> Result:
        """Result.value: list of Committee."""

    @abstractmethod
    def fetch_contestants(self) -> Result:
        """Result.value: list of Contestant in discovery order."""

    @abstractmethod
    def fetch_grades(self, contestant_id) -> Result:
        """Result.value: list of GradeEntry."""

    @abstractmethod
    def submit_grade(self, contestant_id, question_number: int, memorization, performance, tajweed) -> Result:
        """Upsert keyed by (contestant_id, question_number)."""

    @abstractmethod
    def finalize_contestant(self, contestant_id) -> Result:
        """Result.value: the authoritative total score."""

    @abstractmethod
    def reset_contestant_grades(self, contestant_id) -> Result:
        """Result.value: number of grade rows removed."""

    @abstractmethod
    def add_contestant(self, fields: dict) -> Result:
        """Result.value: new contestant id."""

    @abstractmethod
    def update_contestant(self, contestant_id, field: str, value) -> Result:
        pass


class SqliteStore(Collaborator):
    def __init__(self, db_path: str):
        self.db_path = db_path

    # -----------------------
    # DB helpers
    # -----------------------
    @contextmanager
    def db(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def init_db(self):
        with self.db() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS committees (
                    committee_id TEXT PRIMARY KEY,
                    password_hash TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS contestants (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL DEFAULT '',
                    age REAL NOT NULL DEFAULT 0,
                    parts_count REAL NOT NULL DEFAULT 0,
                    parts_numbers TEXT NOT NULL DEFAULT '',
                    department TEXT NOT NULL DEFAULT '',
                    committee_id TEXT NOT NULL DEFAULT '',
                    submitted INTEGER NOT NULL DEFAULT 0,
                    total_score REAL,
                    grade TEXT NOT NULL DEFAULT '',
                    award REAL NOT NULL DEFAULT 0,
                    submitted_at TEXT
                );

                -- one row per (contestant, question); saving again overwrites
                CREATE TABLE IF NOT EXISTS grades (
                    contestant_id INTEGER NOT NULL,
                    question_number INTEGER NOT NULL,
                    memorization REAL NOT NULL DEFAULT 0,
                    performance REAL NOT NULL DEFAULT 0,
                    tajweed REAL NOT NULL DEFAULT 0,
                    PRIMARY KEY (contestant_id, question_number)
                );
                """
            )

    def _failure(self, action: str, e: Exception) -> Result:
        logger.error(f"Store {action} failed: {e}")
        return Result.failure(ErrorKind.COLLABORATOR_FAILURE, str(e))

    @staticmethod
    def _contestant(row: sqlite3.Row) -> Contestant:
        return Contestant(
            id=row["id"],
            name=row["name"],
            age=row["age"],
            parts_count=row["parts_count"],
            committee_id=row["committee_id"],
            submitted=bool(row["submitted"]),
            total_score=row["total_score"],
            grade=row["grade"],
            award=row["award"],
            department=row["department"],
            parts_numbers=row["parts_numbers"],
            submitted_at=row["submitted_at"],
        )

    @staticmethod
    def _grade(row: sqlite3.Row) -> GradeEntry:
        return GradeEntry(
            question_number=row["question_number"],
            memorization=row["memorization"],
            performance=row["performance"],
            tajweed=row["tajweed"],
            contestant_id=row["contestant_id"],
        )

    # -----------------------
    # Committees
    # -----------------------
    def add_committee(self, committee_id: str, password: str) -> Result:
        try:
            with self.db() as conn:
                conn.execute(
                    """
                    INSERT INTO committees(committee_id, password_hash) VALUES(?,?)
                    ON CONFLICT(committee_id) DO UPDATE SET password_hash=excluded.password_hash
                    """,
                    (str(committee_id), sha256(password)),
                )
        except sqlite3.Error as e:
            return self._failure("add_committee", e)
        logger.info(f"Committee {committee_id} saved")
        return Result.success(str(committee_id))

    def fetch_committees(self) -> Result:
        try:
            with self.db() as conn:
                rows = conn.execute(
                    "SELECT committee_id, password_hash FROM committees ORDER BY committee_id"
                ).fetchall()
        except sqlite3.Error as e:
            return self._failure("fetch_committees", e)
        return Result.success([Committee(r["committee_id"], r["password_hash"]) for r in rows])

    # -----------------------
    # Contestants
    # -----------------------
    def fetch_contestants(self) -> Result:
        try:
            with self.db() as conn:
                rows = conn.execute("SELECT * FROM contestants ORDER BY id").fetchall()
        except sqlite3.Error as e:
            return self._failure("fetch_contestants", e)
        logger.debug(f"Fetched {len(rows)} contestants")
        return Result.success([self._contestant(r) for r in rows])

    def add_contestant(self, fields: dict) -> Result:
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            return Result.failure(ErrorKind.INVALID_INPUT, f"Unknown contestant fields: {sorted(unknown)}")

        values = {
            k: (to_number(v) if EDITABLE_FIELDS[k] else str(v or "").strip())
            for k, v in fields.items()
        }
        columns = ", ".join(values)
        placeholders = ",".join(["?"] * len(values))
        try:
            with self.db() as conn:
                if values:
                    cur = conn.execute(
                        f"INSERT INTO contestants({columns}) VALUES({placeholders})",
                        tuple(values.values()),
                    )
                else:
                    cur = conn.execute("INSERT INTO contestants DEFAULT VALUES")
                contestant_id = cur.lastrowid
        except sqlite3.Error as e:
            return self._failure("add_contestant", e)
        logger.info(f"Contestant {contestant_id} added")
        return Result.success(contestant_id)

    def update_contestant(self, contestant_id, field: str, value) -> Result:
        if field not in EDITABLE_FIELDS:
            return Result.failure(ErrorKind.INVALID_INPUT, f"Field '{field}' cannot be edited.")
        value = to_number(value) if EDITABLE_FIELDS[field] else str(value or "").strip()
        try:
            with self.db() as conn:
                cur = conn.execute(f"UPDATE contestants SET {field}=? WHERE id=?", (value, contestant_id))
                if cur.rowcount == 0:
                    return Result.failure(ErrorKind.NOT_FOUND, f"Contestant {contestant_id} not found.")
        except sqlite3.Error as e:
            return self._failure("update_contestant", e)
        logger.info(f"Contestant {contestant_id} field '{field}' updated")
        return Result.success(value)

    # -----------------------
    # Grades
    # -----------------------
    def fetch_grades(self, contestant_id) -> Result:
        try:
            with self.db() as conn:
                rows = conn.execute(
                    "SELECT * FROM grades WHERE contestant_id=? ORDER BY question_number",
                    (contestant_id,),
                ).fetchall()
        except sqlite3.Error as e:
            return self._failure("fetch_grades", e)
        return Result.success([self._grade(r) for r in rows])

    def submit_grade(self, contestant_id, question_number: int, memorization, performance, tajweed) -> Result:
        try:
            with self.db() as conn:
                if not conn.execute("SELECT 1 FROM contestants WHERE id=?", (contestant_id,)).fetchone():
                    return Result.failure(ErrorKind.NOT_FOUND, f"Contestant {contestant_id} not found.")
                conn.execute(
                    """
                    INSERT INTO grades(contestant_id, question_number, memorization, performance, tajweed)
                    VALUES(?,?,?,?,?)
                    ON CONFLICT(contestant_id, question_number) DO UPDATE SET
                        memorization=excluded.memorization,
                        performance=excluded.performance,
                        tajweed=excluded.tajweed
                    """,
                    (
                        contestant_id,
                        int(to_number(question_number)),
                        to_number(memorization),
                        to_number(performance),
                        to_number(tajweed),
                    ),
                )
        except sqlite3.Error as e:
            return self._failure("submit_grade", e)
        logger.debug(f"Grade saved for contestant {contestant_id} question {question_number}")
        return Result.success()

    # -----------------------
    # Lifecycle
    # -----------------------
    def finalize_contestant(self, contestant_id) -> Result:
        try:
            with self.db() as conn:
                row = conn.execute("SELECT * FROM contestants WHERE id=?", (contestant_id,)).fetchone()
                if not row:
                    return Result.failure(ErrorKind.NOT_FOUND, f"Contestant {contestant_id} not found.")
                if row["submitted"]:
                    return Result.failure(
                        ErrorKind.ALREADY_FINALIZED, f"Contestant {contestant_id} is already finalized."
                    )

                contestant = self._contestant(row)
                config = contestant.stage_config
                grade_rows = conn.execute(
                    "SELECT * FROM grades WHERE contestant_id=?", (contestant_id,)
                ).fetchall()
                grade_set = load_grade_set(contestant_id, [self._grade(r) for r in grade_rows], config)
                total = grade_set.running_total(config).total

                conn.execute(
                    "UPDATE contestants SET submitted=1, total_score=?, submitted_at=? WHERE id=?",
                    (total, datetime.utcnow().isoformat(timespec="seconds"), contestant_id),
                )
        except sqlite3.Error as e:
            return self._failure("finalize_contestant", e)
        logger.info(f"Contestant {contestant_id} finalized with total {total:g}/{config.stage_total}")
        return Result.success(total)

    def reset_contestant_grades(self, contestant_id) -> Result:
        try:
            with self.db() as conn:
                if not conn.execute("SELECT 1 FROM contestants WHERE id=?", (contestant_id,)).fetchone():
                    return Result.failure(ErrorKind.NOT_FOUND, f"Contestant {contestant_id} not found.")
                removed = conn.execute("DELETE FROM grades WHERE contestant_id=?", (contestant_id,)).rowcount
                conn.execute(
                    "UPDATE contestants SET submitted=0, total_score=NULL, submitted_at=NULL WHERE id=?",
                    (contestant_id,),
                )
        except sqlite3.Error as e:
            return self._failure("reset_contestant_grades", e)
        logger.info(f"Contestant {contestant_id} reset, {removed} grade rows removed")
        return Result.success(removed)

