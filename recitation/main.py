from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Optional

from fastapi import FastAPI, Form, HTTPException

from .config import DB_PATH
from .log import setup_logger
from .results import ErrorKind, Result
from .review import grades_frame, rank_results, results_frame
from .store import SqliteStore

logger = setup_logger("recitation.api")

store = SqliteStore(DB_PATH)

STATUS_CODES = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.ALREADY_FINALIZED: 409,
    ErrorKind.COLLABORATOR_FAILURE: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    store.init_db()
    logger.info(f"Database ready at {store.db_path}")
    yield


app = FastAPI(title="Recitation Judging", lifespan=lifespan)


def unwrap(resp: Result):
    if not resp.ok:
        raise HTTPException(status_code=STATUS_CODES[resp.error], detail=resp.message or resp.error.value)
    return resp.value


# -----------------------
# Routes: Committees
# -----------------------
@app.get("/committees")
def list_committees():
    # Hashes stay server-side
    return [{"committee_id": c.committee_id} for c in unwrap(store.fetch_committees())]


# -----------------------
# Routes: Contestants
# -----------------------
@app.get("/contestants")
def list_contestants():
    return [asdict(c) for c in unwrap(store.fetch_contestants())]


@app.post("/contestants")
def add_contestant(
    name: str = Form(...),
    age: str = Form(""),
    parts_count: str = Form(""),
    parts_numbers: str = Form(""),
    department: str = Form(""),
    committee_id: str = Form(""),
):
    name = name.strip()
    if not name:
        raise HTTPException(400, "Contestant name is required.")
    contestant_id = unwrap(store.add_contestant({
        "name": name,
        "age": age,
        "parts_count": parts_count,
        "parts_numbers": parts_numbers,
        "department": department,
        "committee_id": committee_id,
    }))
    return {"id": contestant_id}


@app.post("/contestants/{contestant_id}/update")
def update_contestant(contestant_id: int, field: str = Form(...), value: str = Form("")):
    return {"id": contestant_id, "field": field, "value": unwrap(store.update_contestant(contestant_id, field, value))}


# -----------------------
# Routes: Grades
# -----------------------
@app.get("/contestants/{contestant_id}/grades")
def list_grades(contestant_id: int):
    entries = unwrap(store.fetch_grades(contestant_id))
    return grades_frame(entries).to_dict(orient="records")


@app.post("/contestants/{contestant_id}/grades")
def submit_grade(
    contestant_id: int,
    question_number: int = Form(...),
    memorization: str = Form("0"),
    performance: str = Form("0"),
    tajweed: str = Form("0"),
):
    unwrap(store.submit_grade(contestant_id, question_number, memorization, performance, tajweed))
    return {"ok": True}


@app.post("/contestants/{contestant_id}/finalize")
def finalize_contestant(contestant_id: int):
    return {"id": contestant_id, "total_score": unwrap(store.finalize_contestant(contestant_id))}


@app.post("/contestants/{contestant_id}/reset")
def reset_contestant(contestant_id: int):
    return {"id": contestant_id, "removed": unwrap(store.reset_contestant_grades(contestant_id))}


# -----------------------
# Routes: Results
# -----------------------
@app.get("/results")
def results(committee_id: Optional[str] = None, submitted: str = "", ranked: str = ""):
    # submitted: "yes", "no" or "" for all; ranked=yes orders finalized contestants by percent
    submitted_filter = {"yes": True, "no": False}.get(submitted.strip().lower())
    contestants = unwrap(store.fetch_contestants())
    df = results_frame(contestants, committee_id=committee_id or None, submitted=submitted_filter)
    if ranked.strip().lower() == "yes":
        df = rank_results(df)
    return df.to_dict(orient="records")
