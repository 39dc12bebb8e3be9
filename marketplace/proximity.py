"""
marketplace/proximity.py

District proximity index and supplier ranking.

Proximity scores are small non-negative integers, lower means closer:
- same district           -> 0
- unknown / empty input   -> 999 (unknown-location penalty)
- pair not in the table   -> 10
Lookups are directional: the table row is the client's district.

Ranking orders candidate (supplier, price) pairs by (distance, price).
Python's sort is stable, so exact ties keep their input order.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Iterable, NamedTuple, Optional

UNKNOWN_DISTRICT_SCORE = 999
UNMAPPED_PAIR_SCORE = 10

# Canonical district names accepted for clients and suppliers.
DISTRICTS = (
    "Hodan",
    "Wadajir",
    "Hamar Weyne",
    "Hamar Jajab",
    "Shangani",
    "Abdiaziz",
    "Bondhere",
    "Shibis",
    "Karan",
    "Dharkenley",
    "Yaqshid",
    "Daynile",
    "Wardhigley",
    "Howlwadaag",
    "Heliwa",
    "Kahda",
)

_ADJACENCY = {
    "Hodan": {"Hodan": 0, "Wadajir": 1, "Hamar Weyne": 2, "Dharkenley": 2, "Hamar Jajab": 3},
    "Wadajir": {"Wadajir": 0, "Hodan": 1, "Hamar Weyne": 2, "Kaxda": 1, "Dharkenley": 2},
    "Hamar Weyne": {"Hamar Weyne": 0, "Hodan": 2, "Shangani": 1, "Hamar Jajab": 1, "Boondheere": 2},
    "Dharkenley": {"Dharkenley": 0, "Hodan": 2, "Wadajir": 2, "Kaxda": 1, "Daynile": 2},
    "Kaxda": {"Kaxda": 0, "Wadajir": 1, "Dharkenley": 1, "Daynile": 2, "Hodan": 3},
    "Shangani": {"Shangani": 0, "Hamar Weyne": 1, "Boondheere": 1, "Hamar Jajab": 2},
    "Hamar Jajab": {"Hamar Jajab": 0, "Hamar Weyne": 1, "Shangani": 2, "Boondheere": 1},
    "Boondheere": {"Boondheere": 0, "Shangani": 1, "Hamar Jajab": 1, "Hamar Weyne": 2},
    "Abdiaziiz": {"Abdiaziiz": 0, "Kaxda": 2, "Waberi": 1, "Daynile": 2},
    "Waberi": {"Waberi": 0, "Abdiaziiz": 1, "Wadajir": 2, "Kaxda": 2},
    "Daynile": {"Daynile": 0, "Kaxda": 2, "Dharkenley": 2, "Hodan": 3},
    "Yaqshiid": {"Yaqshiid": 0, "Daynile": 1, "Kaxda": 2},
    "Shibis": {"Shibis": 0, "Hamar Weyne": 2, "Boondheere": 2},
    "Heliwa": {"Heliwa": 0, "Daynile": 1, "Yaqshiid": 2},
    "Wardhiigley": {"Wardhiigley": 0, "Wadajir": 2, "Hodan": 2},
    "Kahda": {"Kahda": 0, "Kaxda": 1, "Daynile": 2},
}

# Read-only map-of-maps, built once at import.
PROXIMITY_TABLE = MappingProxyType(
    {origin: MappingProxyType(dict(row)) for origin, row in _ADJACENCY.items()}
)


def proximity(a: str | None, b: str | None) -> int:
    """Distance score between two districts. Total function, never raises."""
    if not a or not b:
        return UNKNOWN_DISTRICT_SCORE
    if a == b:
        return 0
    row = PROXIMITY_TABLE.get(a)
    if row is None:
        return UNMAPPED_PAIR_SCORE
    return row.get(b, UNMAPPED_PAIR_SCORE)


class RankedCandidate(NamedTuple):
    supplier: Any
    price: Any
    distance: int


def rank_suppliers(candidates: Iterable[tuple[Any, Any]], client_district: str | None) -> list[RankedCandidate]:
    """
    Order (supplier, price) pairs by proximity to the client, then by price.

    `supplier` only needs a `.district` attribute. The input is not mutated.
    """
    ranked = [
        RankedCandidate(supplier, price, proximity(client_district, getattr(supplier, "district", None)))
        for supplier, price in candidates
    ]
    ranked.sort(key=lambda c: (c.distance, c.price))
    return ranked


def best_supplier(candidates: Iterable[tuple[Any, Any]], client_district: str | None) -> Optional[RankedCandidate]:
    """First entry of the ranking, or None when there are no candidates."""
    ranked = rank_suppliers(candidates, client_district)
    return ranked[0] if ranked else None


# Client/supplier input may use either the canonical spelling or the one the
# adjacency table is keyed by (e.g. "Kahda" and "Kaxda").
KNOWN_DISTRICTS = frozenset(DISTRICTS) | frozenset(PROXIMITY_TABLE)


def is_known_district(name: str | None) -> bool:
    return bool(name) and name in KNOWN_DISTRICTS
