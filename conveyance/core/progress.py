# conveyance/core/progress.py

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from conveyance.core.stages import (
    WORKFLOW,
    Stage,
    StageStatus,
    default_stage_statuses,
    dependency_of,
)
from conveyance.core.updates import UpdateRecord, UpdateType


@dataclass
class TransactionState:
    current_stage: Stage = Stage.PROOF_OF_FUNDS
    stage_statuses: Dict[Stage, StageStatus] = field(default_factory=default_stage_statuses)

    def status_of(self, stage: Stage) -> StageStatus:
        return self.stage_statuses.get(stage, StageStatus.PENDING)

    def to_dict(self) -> Dict[str, object]:
        return {
            "current_stage": self.current_stage.value,
            "stage_statuses": {s.value: st.value for s, st in self.stage_statuses.items()},
        }


def _first_open_stage_after(state: TransactionState, stage: Stage) -> Optional[Stage]:
    for candidate in WORKFLOW[WORKFLOW.index(stage) + 1:]:
        if state.status_of(candidate) != StageStatus.COMPLETED:
            return candidate
    return None


def build_transaction_state(updates: Iterable[UpdateRecord]) -> TransactionState:
    """
    Replay the update log (oldest first) into stage statuses.

    Deterministic: the same log always produces the same state.
    """
    state = TransactionState()

    for update in updates:
        if update.type == UpdateType.PLATFORM_RESET:
            state = TransactionState()
            continue

        stage = update.stage
        if stage not in WORKFLOW:
            continue

        if update.type == UpdateType.STAGE_COMPLETED:
            state.stage_statuses[stage] = StageStatus.COMPLETED
            if WORKFLOW.index(stage) >= WORKFLOW.index(state.current_stage):
                state.current_stage = _first_open_stage_after(state, stage) or stage

        elif update.type == UpdateType.STATUS_CHANGED:
            if state.status_of(stage) != StageStatus.COMPLETED:
                state.stage_statuses[stage] = StageStatus.IN_PROGRESS

        elif update.type == UpdateType.COMPLETION_DATE_CONFIRMED:
            state.stage_statuses[Stage.COMPLETION_DATE] = StageStatus.COMPLETED

        elif update.type == UpdateType.CONTRACT_EXCHANGED:
            state.stage_statuses[Stage.CONTRACT_EXCHANGE] = StageStatus.COMPLETED

    return state


def progress_percentage(state: TransactionState) -> int:
    """Share of workflow stages completed, 0-100."""
    completed = sum(1 for s in WORKFLOW if state.status_of(s) == StageStatus.COMPLETED)
    return round(completed * 100 / len(WORKFLOW))


def can_access_stage(state: TransactionState, stage: Stage) -> bool:
    """A stage opens once it is not blocked and its predecessor has started."""
    if state.status_of(stage) == StageStatus.BLOCKED:
        return False
    dependency = dependency_of(stage)
    if dependency is None:
        return True
    return state.status_of(dependency) in (StageStatus.COMPLETED, StageStatus.IN_PROGRESS)
