"""Dataclasses and shared type definitions for GarageBot."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class UserCredential:
    user_id: int
    access_token: str
    account_id: str
    nickname: Optional[str] = None
    expires_at: Optional[int] = None


@dataclass(frozen=True)
class CatalogVehicle:
    tank_id: int
    name: str
    tier: int
    nation: str
    vehicle_type: Optional[str] = None
    image_url: Optional[str] = None


@dataclass(frozen=True)
class OwnedVehicle:
    tank_id: int
    in_garage: bool


@dataclass(frozen=True)
class DrawFilter:
    tier: Optional[int] = None
    nation: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.tier is None and self.nation is None


@dataclass(frozen=True)
class PlayerInfo:
    account_id: str
    nickname: str
    battles: Optional[int] = None


__all__ = [
    "CatalogVehicle",
    "DrawFilter",
    "OwnedVehicle",
    "PlayerInfo",
    "UserCredential",
]
