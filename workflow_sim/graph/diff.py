from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from workflow_sim.graph.conditions import to_json_text
from workflow_sim.graph.models import UNDEFINED, StepTrace


ChangeKind = Literal["added", "removed", "changed"]


@dataclass(slots=True)
class StateChange:
    key: str
    before: Any
    after: Any

    @property
    def kind(self) -> ChangeKind:
        if self.before is UNDEFINED:
            return "added"
        if self.after is UNDEFINED:
            return "removed"
        return "changed"


def diff_states(before: Mapping[str, Any], after: Mapping[str, Any]) -> list[StateChange]:
    """Keys whose JSON form differs between two snapshots, in first-seen order."""
    keys = list(before)
    keys.extend(key for key in after if key not in before)

    changes: list[StateChange] = []
    for key in keys:
        before_value = before.get(key, UNDEFINED)
        after_value = after.get(key, UNDEFINED)
        if to_json_text(before_value) != to_json_text(after_value):
            changes.append(StateChange(key=key, before=before_value, after=after_value))
    return changes


def diff_step(step: StepTrace) -> list[StateChange]:
    return diff_states(step.state_before, step.state_after)
