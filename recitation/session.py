"""
Committee evaluation session.

One EvaluationSession is opened per committee login and dropped on logout.
It tracks which contestant of the committee's roster is being graded and
which question is on screen, and drives the finalize/reset lifecycle through
the persistence collaborator. A collaborator failure never leaves the session
half-moved: local state changes only after the store confirms.
"""
from __future__ import annotations

from dataclasses import replace
from enum import Enum
from typing import List, Optional

from .log import setup_logger
from .models import Contestant
from .results import ErrorKind, NotFoundError, Result
from .scoring import GradeSet, RunningTotal, StageConfig, load_grade_set
from .store import Collaborator

logger = setup_logger("recitation.session")


class SessionState(str, Enum):
    IDLE = "idle"  # no roster loaded
    BROWSING = "browsing"  # roster loaded, nobody selected
    GRADING = "grading"  # a contestant and a question selected


class EvaluationSession:
    def __init__(self, store: Collaborator, committee_id):
        self.store = store
        self.committee_id = str(committee_id)
        self._contestants: List[Contestant] = []
        self._roster: List[Contestant] = []
        self._index: Optional[int] = None
        self._question = 1
        self._grade_set: Optional[GradeSet] = None
        self._state = SessionState.IDLE

    # -----------------------
    # Read-only view
    # -----------------------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def roster(self) -> List[Contestant]:
        return list(self._roster)

    @property
    def contestants(self) -> List[Contestant]:
        return list(self._contestants)

    @property
    def current_index(self) -> Optional[int]:
        return self._index

    @property
    def current_contestant(self) -> Optional[Contestant]:
        if self._index is None:
            return None
        return self._roster[self._index]

    @property
    def current_question(self) -> int:
        return self._question

    @property
    def config(self) -> Optional[StageConfig]:
        contestant = self.current_contestant
        return contestant.stage_config if contestant else None

    @property
    def grade_set(self) -> Optional[GradeSet]:
        return self._grade_set

    def running_total(self) -> Optional[RunningTotal]:
        if self._grade_set is None:
            return None
        return self._grade_set.running_total(self.config)

    @property
    def has_previous_contestant(self) -> bool:
        return self._index is not None and self._index > 0

    @property
    def has_next_contestant(self) -> bool:
        if self._index is None:
            return len(self._roster) > 0
        return self._index < len(self._roster) - 1

    @property
    def has_previous_question(self) -> bool:
        return self._state is SessionState.GRADING and self._question > 1

    @property
    def has_next_question(self) -> bool:
        return self._state is SessionState.GRADING and self._question < self.config.question_count

    # -----------------------
    # Roster
    # -----------------------
    def _committee_roster(self) -> List[Contestant]:
        return [
            c for c in self._contestants
            if c.committee_id == self.committee_id and not c.submitted
        ]

    def _roster_position(self, contestant_id) -> Optional[int]:
        for i, c in enumerate(self._roster):
            if c.id == contestant_id:
                return i
        return None

    def _find(self, contestant_id) -> Optional[Contestant]:
        for c in self._contestants:
            if c.id == contestant_id:
                return c
        return None

    def _clear_selection(self):
        self._index = None
        self._grade_set = None
        self._question = 1

    def load_roster(self, committee_id=None) -> Result:
        """Fetch every contestant and keep this committee's ungraded ones, in store order."""
        resp = self.store.fetch_contestants()
        if not resp.ok:
            logger.error(f"Roster load failed for committee {self.committee_id}: {resp.message}")
            return resp

        if committee_id is not None:
            self.committee_id = str(committee_id)
        self._contestants = list(resp.value)
        self._roster = self._committee_roster()
        self._clear_selection()
        self._state = SessionState.BROWSING
        logger.info(f"Roster loaded for committee {self.committee_id}: {len(self._roster)} contestants")
        return Result.success(len(self._roster))

    def refresh(self) -> Result:
        """Re-fetch contestants from the store, then re-filter the roster."""
        if self._state is SessionState.IDLE:
            return self.load_roster()
        resp = self.store.fetch_contestants()
        if not resp.ok:
            logger.error(f"Refresh failed for committee {self.committee_id}: {resp.message}")
            return resp
        self._contestants = list(resp.value)
        return self.refresh_roster()

    def refresh_roster(self) -> Result:
        """
        Re-filter the roster from the contestants already held. A selected
        contestant that dropped out of the roster is deselected; one that
        stayed keeps its grades, resized if its stage shape changed.
        Does nothing until a roster has been loaded.
        """
        if self._state is SessionState.IDLE:
            return Result.success(0)
        selected = self.current_contestant
        self._roster = self._committee_roster()

        position = self._roster_position(selected.id) if selected else None
        if position is None:
            if selected:
                logger.info(f"Contestant {selected.id} left the roster, selection cleared")
            self._clear_selection()
            self._state = SessionState.BROWSING
            return Result.success(len(self._roster))

        self._index = position
        config = self.config
        if len(self._grade_set) != config.question_count:
            logger.info(
                f"Contestant {selected.id} stage changed to {config.question_count} questions"
            )
            self._grade_set = self._grade_set.resized(config)
            self._question = min(self._question, config.question_count)
        return Result.success(len(self._roster))

    # -----------------------
    # Navigation
    # -----------------------
    def select_contestant(self, contestant_id) -> Result:
        position = self._roster_position(contestant_id)
        if position is None:
            logger.warning(f"Contestant {contestant_id} is not in committee {self.committee_id} roster")
            return Result.failure(ErrorKind.NOT_FOUND, f"Contestant {contestant_id} is not in the roster.")
        return self._select_index(position)

    def _select_index(self, index: int) -> Result:
        contestant = self._roster[index]
        config = contestant.stage_config

        resp = self.store.fetch_grades(contestant.id)
        if not resp.ok:
            logger.error(f"Could not load grades for contestant {contestant.id}: {resp.message}")
            return resp

        self._grade_set = load_grade_set(contestant.id, resp.value, config)
        self._index = index
        self._question = 1
        self._state = SessionState.GRADING
        logger.info(
            f"Grading contestant {contestant.id} ({index + 1}/{len(self._roster)}), "
            f"{config.question_count} questions, out of {config.stage_total}"
        )
        return Result.success(contestant)

    def next_contestant(self) -> Result:
        if not self.has_next_contestant:
            return Result.success(self.current_contestant)
        index = 0 if self._index is None else self._index + 1
        return self._select_index(index)

    def previous_contestant(self) -> Result:
        if not self.has_previous_contestant:
            return Result.success(self.current_contestant)
        return self._select_index(self._index - 1)

    def _require_grading(self) -> Optional[Result]:
        if self._state is not SessionState.GRADING:
            return Result.failure(ErrorKind.NOT_FOUND, "No contestant selected.")
        return None

    def next_question(self) -> Result:
        failed = self._require_grading()
        if failed is not None:
            return failed
        if self.has_next_question:
            self._question += 1
            logger.debug(f"Moved to question {self._question}")
        return Result.success(self._question)

    def previous_question(self) -> Result:
        failed = self._require_grading()
        if failed is not None:
            return failed
        if self.has_previous_question:
            self._question -= 1
            logger.debug(f"Moved to question {self._question}")
        return Result.success(self._question)

    # -----------------------
    # Grading
    # -----------------------
    def record_grade(self, memorization, performance, tajweed) -> Result:
        """
        Save the marks for the question on screen, locally first and then to
        the store. Values above a criterion maximum are kept; only the
        running total clamps them.
        """
        failed = self._require_grading()
        if failed is not None:
            return failed
        contestant = self.current_contestant
        if contestant.finalized:
            return Result.failure(ErrorKind.ALREADY_FINALIZED, f"Contestant {contestant.id} is finalized.")

        try:
            entry = self._grade_set.set_entry(self._question, memorization, performance, tajweed)
        except NotFoundError as e:
            return Result.failure(ErrorKind.NOT_FOUND, str(e))
        logger.debug(f"Grade saved locally for contestant {contestant.id} question {self._question}")

        resp = self.store.submit_grade(
            contestant.id, entry.question_number, entry.memorization, entry.performance, entry.tajweed
        )
        if not resp.ok:
            logger.warning(
                f"Grade for contestant {contestant.id} question {entry.question_number} not stored: {resp.message}"
            )
            return resp
        return Result.success(entry)

    # -----------------------
    # Lifecycle
    # -----------------------
    def _replace_contestant(self, updated: Contestant):
        self._contestants = [updated if c.id == updated.id else c for c in self._contestants]
        self._roster = [updated if c.id == updated.id else c for c in self._roster]

    def finalize(self, contestant_id) -> Result:
        """Lock a contestant's grades; the store computes and returns the authoritative total."""
        contestant = self._find(contestant_id)
        if contestant is None or contestant.committee_id != self.committee_id:
            return Result.failure(
                ErrorKind.NOT_FOUND, f"Contestant {contestant_id} is not graded by committee {self.committee_id}."
            )
        if contestant.finalized:
            logger.warning(f"Contestant {contestant_id} is already finalized")
            return Result.failure(ErrorKind.ALREADY_FINALIZED, f"Contestant {contestant_id} is already finalized.")

        resp = self.store.finalize_contestant(contestant_id)
        if not resp.ok:
            logger.error(f"Finalize failed for contestant {contestant_id}: {resp.message}")
            return resp

        total = resp.value
        if self._grade_set is not None and self._grade_set.contestant_id == contestant_id:
            local = self.running_total().total
            if local != total:
                logger.warning(f"Contestant {contestant_id} local total {local:g} differs from stored {total:g}")

        self._replace_contestant(replace(contestant, submitted=True, total_score=total))
        self.refresh_roster()
        logger.info(f"Contestant {contestant_id} finalized with total {total:g}")
        return Result.success(total)

    def reset(self, contestant_id) -> Result:
        """Wipe a contestant's grades and return them to the gradable roster."""
        contestant = self._find(contestant_id)
        if contestant is None:
            return Result.failure(ErrorKind.NOT_FOUND, f"Contestant {contestant_id} not found.")

        resp = self.store.reset_contestant_grades(contestant_id)
        if not resp.ok:
            logger.error(f"Reset failed for contestant {contestant_id}: {resp.message}")
            return resp

        self._replace_contestant(
            replace(contestant, submitted=False, total_score=None, submitted_at=None)
        )
        if self._grade_set is not None and self._grade_set.contestant_id == contestant_id:
            self._grade_set = load_grade_set(contestant_id, [], self.config)
        self.refresh_roster()
        logger.info(f"Contestant {contestant_id} reset, {resp.value} grade rows removed")
        return Result.success(resp.value)

    def close(self):
        """Logout: forget everything."""
        logger.info(f"Committee {self.committee_id} session closed")
        self._contestants = []
        self._roster = []
        self._clear_selection()
        self._state = SessionState.IDLE
