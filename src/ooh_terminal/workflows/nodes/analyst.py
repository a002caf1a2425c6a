"""Free-text analyst answers: news summaries and questions about the sector."""
from __future__ import annotations

import json
import logging
from typing import Awaitable, Callable

from ooh_terminal.domain.models.sector import NewsItem, Snapshot
from ooh_terminal.infrastructure.llm.gemini_client import InferenceRequest, InferenceResponse
from ooh_terminal.workflows.nodes.llm_clean import clean_llm_output

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an equity analyst covering out-of-home advertising. Be concise and factual."

SUMMARY_UNAVAILABLE = "The summary service is temporarily unavailable."
SUMMARY_EMPTY = "Summary unavailable."
ANSWER_UNAVAILABLE = "The analyst service is currently saturated. Please retry later."
ANSWER_EMPTY = "Analysis unavailable."

Invoke = Callable[[InferenceRequest], Awaitable[InferenceResponse]]


def sector_context(snapshot: Snapshot) -> str:
    """Compact JSON view of the companies handed to the model as grounding."""
    rows = []
    for company in snapshot.companies:
        rows.append(
            {
                "t": company.ticker,
                "price": company.price,
                "r25": company.fundamental("revenue", "2025"),
                "eb25": company.fundamental("ebitda", "2025"),
                "ebit25": company.fundamental("ebit", "2025"),
                "ev_ebitda25": round(company.derived.get("ev_ebitda_forward", 0.0), 2),
                "pe25": round(company.derived.get("pe_forward", 0.0), 2),
                "rating": company.rating.value,
            }
        )
    return json.dumps(rows, ensure_ascii=False)


async def summarize_news(invoke: Invoke, item: NewsItem) -> str:
    prompt = (
        f'Analyse this out-of-home advertising news item: "{item.title}" ({item.source}).\n'
        "Give a short summary followed by 3 key points."
    )
    try:
        response = await invoke(InferenceRequest.from_prompt(prompt, system=SYSTEM_PROMPT))
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("News summary failed: %s", exc)
        return SUMMARY_UNAVAILABLE
    return clean_llm_output(response.text) or SUMMARY_EMPTY


async def ask(invoke: Invoke, question: str, snapshot: Snapshot) -> str:
    prompt = f"Context: {sector_context(snapshot)}\nQuestion: {question}"
    try:
        response = await invoke(InferenceRequest.from_prompt(prompt, system=SYSTEM_PROMPT))
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("Analyst question failed: %s", exc)
        return ANSWER_UNAVAILABLE
    return clean_llm_output(response.text) or ANSWER_EMPTY
