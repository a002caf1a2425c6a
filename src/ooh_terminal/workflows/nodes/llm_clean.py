"""Helpers to pull usable payloads out of Gemini's free-form answers."""
from __future__ import annotations

import json
import logging
import re
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FENCE = re.compile(r"```[A-Za-z0-9_-]*")
_DECODER = json.JSONDecoder()


def clean_llm_output(text: str) -> str:
    """Remove 'Thinking.../Planning' scaffolding and leading quotes."""
    if not text:
        return ""
    cleaned = str(text).strip()
    cleaned = re.sub(r"(?is)^\s*\*?(?:Thinking|Planning)[^.]*\*?.*?(?:\n{2,}|$)", "", cleaned)
    cleaned = re.sub(r"(?im)^>.*\n", "", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def clean_json_response(text: Any) -> str:
    """Return the text from the first ``{`` or ``[`` on, without code fences.

    Falls back to ``"{}"`` when no JSON opener is present. Never raises.
    """
    if not text or not isinstance(text, str):
        return "{}"
    stripped = _FENCE.sub("", text)
    starts = [pos for pos in (stripped.find("{"), stripped.find("[")) if pos >= 0]
    if not starts:
        return "{}"
    return stripped[min(starts):].strip()


def parse_json_payload(text: Any, default: T) -> Any:
    """Decode the first JSON value in ``text``; any failure yields ``default``.

    Trailing prose after the JSON value is ignored.
    """
    cleaned = clean_json_response(text)
    try:
        payload, _ = _DECODER.raw_decode(cleaned)
    except ValueError as exc:
        logger.debug("Discarding unparseable provider payload: %s", exc)
        return default
    return payload
