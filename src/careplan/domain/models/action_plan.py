from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class ActionableSteps(BaseModel):
    """Steps extracted from a doctor's note.

    ``checklist`` holds one-time tasks; ``plan`` holds recurring instructions
    that are turned into reminders.
    """

    checklist: List[str] = Field(default_factory=list)
    plan: List[str] = Field(default_factory=list)


def default_actionable_steps() -> ActionableSteps:
    """Fallback used whenever extraction fails or returns malformed output."""

    return ActionableSteps(
        checklist=["Consult your doctor for immediate steps."],
        plan=["Follow up with your doctor for a detailed plan."],
    )
