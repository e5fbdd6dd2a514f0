"""Client for the external application-scoring service.

Scoring is fire-and-forget: it runs as a background task after the
submission response is sent and any failure is only logged.
"""
from datetime import datetime
import logging
import os

import httpx

from prolance.applications.crud import save_score
from prolance import database

logger = logging.getLogger(__name__)

SCORING_SERVICE_URL = os.getenv("SCORING_SERVICE_URL", "")
SCORING_TIMEOUT = float(os.getenv("SCORING_TIMEOUT", "20"))

ANALYSIS_KEYS = ("relevance", "professionalism", "clarity", "experience", "summary")


def score_application(project_title: str, project_description: str, skills: list, cover_letter: str) -> dict:
    response = httpx.post(
        f"{SCORING_SERVICE_URL.rstrip('/')}/score-application",
        json={
            "project_title": project_title,
            "project_description": project_description,
            "skills_required": skills,
            "cover_letter": cover_letter,
        },
        timeout=SCORING_TIMEOUT,
    )
    response.raise_for_status()
    payload = response.json()
    score = max(0, min(100, int(payload.get("score", 0))))
    analysis = {key: payload.get("analysis", {}).get(key) for key in ANALYSIS_KEYS}
    return {"ai_score": score, "ai_analysis": analysis}


def score_application_task(application_id: int, project_title: str, project_description: str,
                           skills: list, cover_letter: str):
    if not SCORING_SERVICE_URL:
        return
    try:
        result = score_application(project_title, project_description, skills, cover_letter)
    except Exception as exc:
        logger.warning("Scoring failed for application %s: %s", application_id, exc)
        return
    db = database.SessionLocal()
    try:
        save_score(db, application_id, result["ai_score"], result["ai_analysis"], datetime.utcnow())
        logger.info("Application %s scored %s", application_id, result["ai_score"])
    except Exception:
        logger.exception("Could not store score for application %s", application_id)
        db.rollback()
    finally:
        db.close()
