# conveyance/core/stages.py

from enum import Enum
from typing import Dict, List, Optional


class Stage(str, Enum):
    OFFER_ACCEPTED = "offer-accepted"
    PROOF_OF_FUNDS = "proof-of-funds"
    CONVEYANCERS = "conveyancers"
    DRAFT_CONTRACT = "draft-contract"
    SEARCH_SURVEY = "search-survey"
    ENQUIRIES = "enquiries"
    MORTGAGE_OFFER = "mortgage-offer"
    COMPLETION_DATE = "completion-date"
    CONTRACT_EXCHANGE = "contract-exchange"
    TRANSACTION_FEE = "transaction-fee"
    REQUISITIONS = "requisitions"
    COMPLETION = "completion"
    # Pseudo-stage for platform notices
    SYSTEM = "system"

    @property
    def title(self) -> str:
        return STAGE_INFO[self]["title"]

    @property
    def description(self) -> str:
        return STAGE_INFO[self]["description"]


class StageStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


# ==================================================
# WORKFLOW ORDER (single source of truth)
# ==================================================

WORKFLOW: List[Stage] = [
    Stage.OFFER_ACCEPTED,
    Stage.PROOF_OF_FUNDS,
    Stage.CONVEYANCERS,
    Stage.DRAFT_CONTRACT,
    Stage.SEARCH_SURVEY,
    Stage.ENQUIRIES,
    Stage.MORTGAGE_OFFER,
    Stage.COMPLETION_DATE,
    Stage.CONTRACT_EXCHANGE,
    Stage.TRANSACTION_FEE,
    Stage.REQUISITIONS,
    Stage.COMPLETION,
]

STAGE_INFO: Dict[Stage, Dict[str, str]] = {
    Stage.OFFER_ACCEPTED: {
        "title": "Offer Accepted",
        "description": "Property offer has been accepted by the seller",
    },
    Stage.PROOF_OF_FUNDS: {
        "title": "Proof of Funds",
        "description": "Buyer provides evidence of available funds",
    },
    Stage.CONVEYANCERS: {
        "title": "Conveyancers",
        "description": "Legal representatives appointed for the transaction",
    },
    Stage.DRAFT_CONTRACT: {
        "title": "Draft Contract",
        "description": "Legal contract prepared and reviewed",
    },
    Stage.SEARCH_SURVEY: {
        "title": "Search & Survey",
        "description": "Property searches and surveys conducted",
    },
    Stage.ENQUIRIES: {
        "title": "Enquiries",
        "description": "Legal and property enquiries raised and answered",
    },
    Stage.MORTGAGE_OFFER: {
        "title": "Mortgage Offer",
        "description": "Formal mortgage offer received and accepted",
    },
    Stage.COMPLETION_DATE: {
        "title": "Completion Date",
        "description": "Completion date agreed between all parties",
    },
    Stage.CONTRACT_EXCHANGE: {
        "title": "Contract Exchange",
        "description": "Legal contracts exchanged between parties",
    },
    Stage.TRANSACTION_FEE: {
        "title": "Transaction Fee",
        "description": "Platform transaction fee processed",
    },
    Stage.REQUISITIONS: {
        "title": "Replies to Requisitions",
        "description": "Final legal requisitions addressed",
    },
    Stage.COMPLETION: {
        "title": "Completion",
        "description": "Transaction completed and keys transferred",
    },
    Stage.SYSTEM: {
        "title": "Platform",
        "description": "Platform-wide notices",
    },
}


def dependency_of(stage: Stage) -> Optional[Stage]:
    """Each workflow stage depends on the one before it."""
    if stage not in WORKFLOW:
        return None
    index = WORKFLOW.index(stage)
    return WORKFLOW[index - 1] if index > 0 else None


def next_stage(stage: Stage) -> Optional[Stage]:
    if stage not in WORKFLOW:
        return None
    index = WORKFLOW.index(stage)
    return WORKFLOW[index + 1] if index + 1 < len(WORKFLOW) else None


def default_stage_statuses() -> Dict[Stage, StageStatus]:
    statuses = {stage: StageStatus.PENDING for stage in WORKFLOW}
    statuses[Stage.OFFER_ACCEPTED] = StageStatus.COMPLETED
    statuses[Stage.PROOF_OF_FUNDS] = StageStatus.IN_PROGRESS
    return statuses
