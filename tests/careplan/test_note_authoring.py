import pytest

from src.careplan.domain.models.action_plan import ActionableSteps, default_actionable_steps
from src.careplan.services.notes.authoring import (
    DemoActionPlanExtractor,
    LLMActionPlanExtractor,
    NoteAuthoringService,
    get_action_plan_extractor_from_env,
    parse_actionable_steps,
)


def test_parse_actionable_steps_strips_markdown_fences():
    raw = '```json\n{"checklist": ["Buy a drug"], "plan": ["Take Amoxicillin daily for 7 days"]}\n```'

    steps = parse_actionable_steps(raw)

    assert steps.checklist == ["Buy a drug"]
    assert steps.plan == ["Take Amoxicillin daily for 7 days"]


def test_parse_actionable_steps_joins_structured_plan_items():
    raw = '{"checklist": [], "plan": [{"action": "Take Ibuprofen", "frequency": "daily", "duration": "for 5 days"}]}'

    steps = parse_actionable_steps(raw)

    assert steps.plan == ["Take Ibuprofen daily for 5 days"]


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        '{"checklist": []}',
        '{"plan": []}',
        '["checklist", "plan"]',
        '{"checklist": [], "plan": "daily for 7 days"}',
        '{"checklist": [], "plan": [{"action": "Walk"}]}',
        '{"checklist": [], "plan": [42]}',
    ],
)
def test_parse_actionable_steps_rejects_malformed_responses(raw):
    with pytest.raises(ValueError):
        parse_actionable_steps(raw)


def test_demo_extractor_splits_checklist_and_plan():
    note = (
        "Buy a thermometer. Take Amoxicillin 500mg daily for 7 days.\n"
        "Do stretching exercises every 2 days for 4 days! Call the clinic if the fever persists."
    )

    steps = DemoActionPlanExtractor().extract_plan(note)

    assert steps.checklist == ["Buy a thermometer", "Call the clinic if the fever persists"]
    assert steps.plan == [
        "Take Amoxicillin 500mg daily for 7 days",
        "Do stretching exercises every 2 days for 4 days!",
    ]


def test_demo_extractor_handles_empty_note():
    assert DemoActionPlanExtractor().extract_plan("") == ActionableSteps()


class _RaisingExtractor:
    def extract_plan(self, note_text):
        raise RuntimeError("model unavailable")


class _WrongTypeExtractor:
    def extract_plan(self, note_text):
        return {"checklist": [], "plan": []}


class _StaticExtractor:
    def __init__(self, steps):
        self._steps = steps

    def extract_plan(self, note_text):
        return self._steps


@pytest.mark.parametrize("extractor", [_RaisingExtractor(), _WrongTypeExtractor()])
def test_authoring_falls_back_to_default_plan(extractor):
    steps = NoteAuthoringService(extractor).extract_plan("anything")

    assert steps == default_actionable_steps()
    assert steps.checklist == ["Consult your doctor for immediate steps."]
    assert steps.plan == ["Follow up with your doctor for a detailed plan."]


def test_authoring_passes_through_valid_steps():
    expected = ActionableSteps(checklist=["Buy a drug"], plan=["Take it daily for 3 days"])

    assert NoteAuthoringService(_StaticExtractor(expected)).extract_plan("note") == expected


def test_extractor_selection_from_settings(monkeypatch):
    from src.careplan.config import settings

    monkeypatch.setattr(settings, "note_authoring_backend", "LLM")
    assert isinstance(get_action_plan_extractor_from_env(), LLMActionPlanExtractor)

    monkeypatch.setattr(settings, "note_authoring_backend", "demo")
    assert isinstance(get_action_plan_extractor_from_env(), DemoActionPlanExtractor)
