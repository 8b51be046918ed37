from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Optional, Protocol

from src.careplan.config import settings
from src.careplan.domain.models.action_plan import ActionableSteps, default_actionable_steps
from src.careplan.services.planning.parser import parse_plan_line

logger = logging.getLogger("careplan.authoring")

EXTRACTION_PROMPT = """
Extract actionable steps from this doctor's note. Return a JSON object with two keys:
- "checklist": A list of immediate one-time tasks (e.g., "Buy a drug").
- "plan": A list of scheduled actions as strings (e.g., "Take Amoxicillin 500mg twice daily for 7 days").

Example Response:
{{
  "checklist": ["Buy a drug"],
  "plan": ["Take Amoxicillin 500mg twice daily for 7 days"]
}}

Doctor's Note: {note}

Return the response as a valid JSON object without Markdown syntax.
"""

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+|\n+")


class ActionPlanExtractor(Protocol):
    """Turns free-text note content into a checklist and plan lines."""

    def extract_plan(self, note_text: str) -> ActionableSteps:  # pragma: no cover - interface
        raise NotImplementedError


def parse_actionable_steps(raw: str) -> ActionableSteps:
    """Parse an extractor response into ActionableSteps.

    Markdown code fences are stripped. Plan items may be strings or objects
    with ``action``, ``frequency`` and ``duration`` keys, which are joined
    into a single line. Anything else raises ValueError.
    """

    cleaned = _FENCE_RE.sub("", raw).strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ValueError("Invalid JSON format in extractor response.") from exc

    if not isinstance(data, dict) or "checklist" not in data or "plan" not in data:
        raise ValueError("Extractor response is missing required keys: checklist or plan.")
    if not isinstance(data["plan"], list):
        raise ValueError("Invalid plan format: expected an array.")

    plan: List[str] = []
    for item in data["plan"]:
        plan.append(_plan_item_to_line(item))

    return ActionableSteps.model_validate({"checklist": data["checklist"], "plan": plan})


def _plan_item_to_line(item: Any) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, dict) and all(item.get(key) for key in ("action", "frequency", "duration")):
        return f"{item['action']} {item['frequency']} {item['duration']}"
    raise ValueError("Invalid plan item: expected a string or an object with action, frequency and duration.")


class DemoActionPlanExtractor:
    """Offline extractor used by default and in tests.

    Sentences that carry a recognisable schedule ("daily for 7 days") become
    plan lines; every other sentence becomes a checklist item.
    """

    def extract_plan(self, note_text: str) -> ActionableSteps:
        checklist: List[str] = []
        plan: List[str] = []
        for sentence in _SENTENCE_SPLIT_RE.split(note_text):
            sentence = sentence.strip().rstrip(".").strip()
            if not sentence:
                continue
            if parse_plan_line(sentence) is not None:
                plan.append(sentence)
            else:
                checklist.append(sentence)
        return ActionableSteps(checklist=checklist, plan=plan)


class LLMActionPlanExtractor:
    """Extractor that asks an LLM via the OpenAI Python client.

    If the `OPENAI_API_KEY` environment variable is not set or the `openai`
    package is missing, it will raise at runtime; NoteAuthoringService turns
    that into the default plan.
    """

    def __init__(self, model: str | None = None) -> None:
        self._model = model or settings.llm_model

    def extract_plan(self, note_text: str) -> ActionableSteps:  # pragma: no cover - depends on external service
        api_key = settings.openai_api_key
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY must be set to use LLMActionPlanExtractor")

        try:
            from openai import OpenAI
        except ImportError as exc:
            raise RuntimeError(
                "LLMActionPlanExtractor requires the 'openai' package. "
                "Install it with 'pip install openai'"
            ) from exc

        client = OpenAI(api_key=api_key)
        response = client.responses.create(
            model=self._model,
            input=[{"role": "user", "content": EXTRACTION_PROMPT.format(note=note_text)}],
        )
        logger.debug("Raw extractor response: %s", response.output_text)
        return parse_actionable_steps(response.output_text)


class NoteAuthoringService:
    """Extracts actionable steps, never letting an extractor failure escape.

    Any error or malformed output yields the default checklist and plan so
    that note submission always completes.
    """

    def __init__(self, extractor: Optional[ActionPlanExtractor] = None) -> None:
        self._extractor = extractor or get_action_plan_extractor_from_env()

    def extract_plan(self, note_text: str) -> ActionableSteps:
        try:
            steps = self._extractor.extract_plan(note_text)
        except Exception:
            logger.exception("Error generating actionable steps; using default plan")
            return default_actionable_steps()

        if not isinstance(steps, ActionableSteps):
            logger.error("Extractor returned %r instead of ActionableSteps; using default plan", type(steps))
            return default_actionable_steps()
        return steps


def get_action_plan_extractor_from_env() -> ActionPlanExtractor:
    """Select an extractor based on NOTE_AUTHORING_BACKEND.

    - NOTE_AUTHORING_BACKEND=llm → LLMActionPlanExtractor
    - Anything else (or unset) → DemoActionPlanExtractor
    """

    backend_name = settings.note_authoring_backend.lower()
    if backend_name == "llm":
        return LLMActionPlanExtractor()
    return DemoActionPlanExtractor()
