"""
ROLE DEFINITIONS

Define transaction participants and which of them act as conveyancers.

Rules:
- Roles are explicit string enums (values match the persisted form)
- SYSTEM may author updates but is never a participant
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional


class Role(str, Enum):
    """Transaction participants."""
    BUYER = "buyer"
    ESTATE_AGENT = "estate-agent"
    BUYER_CONVEYANCER = "buyer-conveyancer"
    SELLER_CONVEYANCER = "seller-conveyancer"
    SYSTEM = "system"

    @property
    def label(self) -> str:
        return ROLE_LABELS[self]


ROLE_LABELS: Dict[Role, str] = {
    Role.BUYER: "Buyer",
    Role.ESTATE_AGENT: "Estate Agent",
    Role.BUYER_CONVEYANCER: "Buyer Conveyancer",
    Role.SELLER_CONVEYANCER: "Seller Conveyancer",
    Role.SYSTEM: "System",
}

# Roles a person can sign in as
PARTICIPANTS = (
    Role.BUYER,
    Role.ESTATE_AGENT,
    Role.BUYER_CONVEYANCER,
    Role.SELLER_CONVEYANCER,
)

CONVEYANCERS: FrozenSet[Role] = frozenset(
    {Role.BUYER_CONVEYANCER, Role.SELLER_CONVEYANCER}
)


def counterpart(role: Role) -> Optional[Role]:
    """The conveyancer on the other side of the transaction, if any."""
    if role == Role.BUYER_CONVEYANCER:
        return Role.SELLER_CONVEYANCER
    if role == Role.SELLER_CONVEYANCER:
        return Role.BUYER_CONVEYANCER
    return None
