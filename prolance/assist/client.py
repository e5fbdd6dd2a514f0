"""Client for the external writing-assistant service.

Every task is one POST to `{AI_SERVICE_URL}/{task}`. The service replies with
JSON, which is trimmed here to the fields the API exposes.
"""
import logging
import os

import httpx

logger = logging.getLogger(__name__)

AI_SERVICE_URL = os.getenv("AI_SERVICE_URL", "")
AI_TIMEOUT = float(os.getenv("AI_TIMEOUT", "30"))

TONES = ("professional", "friendly", "casual", "neutral", "urgent", "aggressive", "disappointed", "enthusiastic")
INTENTS = (
    "contract_proposal", "meeting_request", "file_request", "question",
    "clarification", "update", "feedback", "general",
)
SUMMARY_KEYS = ("discussion_points", "decisions", "action_items", "deadlines")
MAX_REPLIES = 3
REPLY_CONTEXT = 10


class AssistUnavailable(RuntimeError):
    pass


class AssistError(RuntimeError):
    pass


def _confidence(value) -> int:
    try:
        return max(0, min(100, int(value)))
    except (TypeError, ValueError):
        return 0


def request_assist(task: str, payload: dict) -> dict:
    if not AI_SERVICE_URL:
        raise AssistUnavailable("AI assistant is not configured")
    try:
        response = httpx.post(f"{AI_SERVICE_URL.rstrip('/')}/{task}", json=payload, timeout=AI_TIMEOUT)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPError as exc:
        logger.warning("Assistant task %s failed: %s", task, exc)
        raise AssistError(str(exc) or exc.__class__.__name__) from exc
    except ValueError as exc:
        raise AssistError("Assistant returned an invalid response") from exc
    if not isinstance(data, dict):
        raise AssistError("Assistant returned an invalid response")
    return data


def improve_description(description: str, title: str = None) -> str:
    data = request_assist("improve-description", {"description": description, "title": title})
    improved = (data.get("improved_description") or "").strip()
    if not improved:
        raise AssistError("Assistant returned an empty description")
    return improved


def smart_replies(transcript: list, user_role: str) -> list:
    data = request_assist("smart-replies", {"messages": transcript[-REPLY_CONTEXT:], "user_role": user_role})
    replies = data.get("replies") or []
    return [str(reply) for reply in replies if reply][:MAX_REPLIES]


def analyze_tone(message: str) -> dict:
    data = request_assist("analyze-tone", {"message": message})
    tone = data.get("tone")
    return {
        "tone": tone if tone in TONES else "neutral",
        "confidence": _confidence(data.get("confidence")),
        "is_problematic": bool(data.get("is_problematic", False)),
        "suggestion": data.get("suggestion") or None,
    }


def detect_intent(message: str) -> dict:
    data = request_assist("detect-intent", {"message": message})
    intent = data.get("intent")
    return {
        "intent": intent if intent in INTENTS else "general",
        "confidence": _confidence(data.get("confidence")),
    }


def summarize_conversation(transcript: list) -> dict:
    data = request_assist("summarize-conversation", {"messages": transcript})
    return {key: [str(item) for item in data.get(key) or []] for key in SUMMARY_KEYS}
