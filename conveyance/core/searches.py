# conveyance/core/searches.py

from enum import Enum
from typing import Dict, List, NamedTuple, Optional


class SearchStatus(str, Enum):
    PENDING = "pending"
    ORDERED = "ordered"
    COMPLETED = "completed"


class SearchItem(NamedTuple):
    id: str
    name: str
    provider: str
    cost: int
    estimated_days: int
    category: str


# Property searches a buyer conveyancer can order
SEARCH_CATALOGUE: List[SearchItem] = [
    SearchItem("local-authority-search", "Local Authority Search", "Local Council", 150, 5, "Standard"),
    SearchItem("environmental-search", "Environmental Search", "Environmental Agency", 45, 2, "Standard"),
    SearchItem("water-drainage-search", "Water & Drainage Search", "Water Authority", 65, 3, "Standard"),
    SearchItem("chancel-repair-search", "Chancel Repair Search", "Church Commissioners", 25, 1, "Standard"),
    SearchItem("coal-mining-search", "Coal Mining Search", "Coal Authority", 35, 2, "Regional"),
    SearchItem("flood-risk-assessment", "Detailed Flood Risk Assessment", "Flood Risk Specialists", 95, 4, "Optional"),
    SearchItem("ground-stability-search", "Ground Stability Search", "Geological Survey", 55, 3, "Optional"),
    SearchItem("japanese-knotweed-survey", "Japanese Knotweed Survey", "Invasive Species Specialists", 120, 5, "Optional"),
]

_BY_ID: Dict[str, SearchItem] = {item.id: item for item in SEARCH_CATALOGUE}


def find_search(search_id: str) -> Optional[SearchItem]:
    return _BY_ID.get(search_id)
