"""Filter parsing and uniform vehicle selection."""

from __future__ import annotations

import random
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .catalog import VehicleCatalog
from .models import CatalogVehicle, DrawFilter, OwnedVehicle

TIER_RANGE = range(1, 11)

NATIONS: Dict[str, str] = {
    "ussr": "USSR",
    "germany": "Germany",
    "usa": "USA",
    "china": "China",
    "france": "France",
    "uk": "U.K.",
    "japan": "Japan",
    "czech": "Czechoslovakia",
    "sweden": "Sweden",
    "poland": "Poland",
    "italy": "Italy",
}

NATION_ALIASES: Dict[str, str] = {
    "su": "ussr",
    "ger": "germany",
    "de": "germany",
    "us": "usa",
    "cn": "china",
    "fr": "france",
    "gb": "uk",
    "britain": "uk",
    "jp": "japan",
    "cz": "czech",
    "se": "sweden",
    "pl": "poland",
    "it": "italy",
}


class DrawFilterError(ValueError):
    """Raised when draw command arguments cannot be turned into a filter."""


def nation_label(nation: str) -> str:
    return NATIONS.get(nation, nation.title())


def normalize_nation(raw: str) -> Optional[str]:
    key = raw.strip().lower()
    if key in NATIONS:
        return key
    return NATION_ALIASES.get(key)


def _as_int(token: str) -> Optional[int]:
    try:
        return int(token)
    except ValueError:
        return None


def parse_draw_filter(tokens: Sequence[str]) -> DrawFilter:
    """Build a filter from command arguments.

    The first integer token is the tier and the first other token is the
    nation, in either order. At most one of each is accepted.
    """
    cleaned = [token.strip() for token in tokens if token and token.strip()]
    if len(cleaned) > 2:
        raise DrawFilterError("Too many arguments. Give at most one tier and one nation.")

    tier: Optional[int] = None
    nation: Optional[str] = None
    for token in cleaned:
        number = _as_int(token)
        if number is not None:
            if tier is not None:
                raise DrawFilterError("Only one tier can be given.")
            if number not in TIER_RANGE:
                raise DrawFilterError(
                    f"Tier must be between {TIER_RANGE.start} and {TIER_RANGE.stop - 1}."
                )
            tier = number
            continue
        if nation is not None:
            raise DrawFilterError("Only one nation can be given.")
        resolved = normalize_nation(token)
        if resolved is None:
            raise DrawFilterError(
                f"Unknown nation `{token}`. Known nations: {', '.join(sorted(NATIONS))}."
            )
        nation = resolved
    return DrawFilter(tier=tier, nation=nation)


def matches_filter(vehicle: CatalogVehicle, draw_filter: DrawFilter) -> bool:
    if draw_filter.tier is not None and vehicle.tier != draw_filter.tier:
        return False
    if draw_filter.nation is not None and vehicle.nation.lower() != draw_filter.nation:
        return False
    return True


def eligible_vehicles(
    owned: Iterable[OwnedVehicle],
    catalog: VehicleCatalog,
    draw_filter: DrawFilter,
) -> List[CatalogVehicle]:
    """Inner-join owned vehicles with the catalog, keeping in-garage filter matches."""
    seen: Set[int] = set()
    eligible: List[CatalogVehicle] = []
    for entry in owned:
        if not entry.in_garage or entry.tank_id in seen:
            continue
        vehicle = catalog.get(entry.tank_id)
        if vehicle is None:
            continue
        if not matches_filter(vehicle, draw_filter):
            continue
        seen.add(entry.tank_id)
        eligible.append(vehicle)
    return eligible


def draw_vehicle(candidates: Sequence[CatalogVehicle], rng: random.Random) -> Optional[CatalogVehicle]:
    if not candidates:
        return None
    return rng.choice(candidates)


def draw_tier(rng: random.Random) -> int:
    return rng.choice(TIER_RANGE)


def describe_filter(draw_filter: DrawFilter) -> str:
    parts: List[str] = []
    if draw_filter.tier is not None:
        parts.append(f"tier {draw_filter.tier}")
    if draw_filter.nation is not None:
        parts.append(nation_label(draw_filter.nation))
    return ", ".join(parts) if parts else "no filters"


__all__ = [
    "NATIONS",
    "TIER_RANGE",
    "DrawFilterError",
    "describe_filter",
    "draw_tier",
    "draw_vehicle",
    "eligible_vehicles",
    "matches_filter",
    "nation_label",
    "normalize_nation",
    "parse_draw_filter",
]
