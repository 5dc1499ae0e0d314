"""Async client for the Wargaming World of Tanks public API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlencode

import aiohttp

from .models import CatalogVehicle, OwnedVehicle, PlayerInfo
from .utils import redact_token

logger = logging.getLogger("garagebot.wot_api")

DEFAULT_API_BASE = "https://api.worldoftanks.eu"
ENCYCLOPEDIA_PAGE_LIMIT = 100
VEHICLE_FIELDS = "tank_id,name,short_name,tier,nation,type,images"


class WargamingAPIError(Exception):
    """Raised when an upstream call fails at the transport, HTTP or API level."""

    def __init__(
        self,
        message: str,
        *,
        code: Optional[int] = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status = status


def _parse_vehicle(entry: Mapping[str, Any]) -> Optional[CatalogVehicle]:
    try:
        tank_id = int(entry["tank_id"])
        tier = int(entry["tier"])
    except (KeyError, TypeError, ValueError):
        return None
    images = entry.get("images") or {}
    image_url = None
    if isinstance(images, Mapping):
        image_url = images.get("big_icon") or images.get("small_icon") or None
    name = str(entry.get("name") or entry.get("short_name") or f"#{tank_id}")
    return CatalogVehicle(
        tank_id=tank_id,
        name=name,
        tier=tier,
        nation=str(entry.get("nation") or "").lower(),
        vehicle_type=entry.get("type") or None,
        image_url=image_url,
    )


def _parse_battles(entry: Mapping[str, Any]) -> Optional[int]:
    statistics = entry.get("statistics")
    if not isinstance(statistics, Mapping):
        return None
    overall = statistics.get("all")
    raw = overall.get("battles") if isinstance(overall, Mapping) else statistics.get("battles")
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


class WargamingClient:
    """Thin wrapper around the endpoints GarageBot needs.

    Every request is bounded by a total timeout and every failure mode surfaces
    as :class:`WargamingAPIError`, so callers only need one except clause.
    """

    def __init__(
        self,
        application_id: str,
        *,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.application_id = application_id
        self.api_base = api_base.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def start(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def authorize_url(self, redirect_uri: str) -> str:
        query = urlencode({"application_id": self.application_id, "redirect_uri": redirect_uri})
        return f"{self.api_base}/wot/auth/login/?{query}"

    async def _get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        if self._session is None or self._session.closed:
            await self.start()
        assert self._session is not None
        query: Dict[str, str] = {"application_id": self.application_id}
        for key, value in (params or {}).items():
            if value is not None:
                query[key] = str(value)
        url = f"{self.api_base}{path}"
        try:
            async with self._session.get(url, params=query, timeout=self._timeout) as resp:
                if resp.status != 200:
                    raise WargamingAPIError(f"HTTP {resp.status} from {path}", status=resp.status)
                payload = await resp.json(content_type=None)
        except asyncio.TimeoutError as exc:
            raise WargamingAPIError(f"Timed out calling {path}") from exc
        except aiohttp.ClientError as exc:
            raise WargamingAPIError(f"Request to {path} failed: {exc}") from exc
        except ValueError as exc:
            raise WargamingAPIError(f"Invalid JSON from {path}") from exc

        if not isinstance(payload, dict):
            raise WargamingAPIError(f"Unexpected payload from {path}")
        if payload.get("status") != "ok":
            error = payload.get("error") or {}
            message = str(error.get("message") or "UNKNOWN_ERROR")
            code = error.get("code")
            raise WargamingAPIError(
                f"{path} returned {message}",
                code=int(code) if isinstance(code, int) else None,
            )
        return payload

    async def account_info(self, access_token: str, account_id: Optional[str] = None) -> Optional[PlayerInfo]:
        """Resolve the player behind an access token, or None if no account matches."""
        logger.debug("account/info account=%s token=%s", account_id, redact_token(access_token))
        payload = await self._get(
            "/wot/account/info/",
            {"access_token": access_token, "account_id": account_id},
        )
        data = payload.get("data")
        if not isinstance(data, Mapping) or not data:
            return None
        if account_id is not None:
            entry = data.get(str(account_id))
        else:
            entry = next((value for value in data.values() if value), None)
        if not isinstance(entry, Mapping):
            return None
        resolved_id = entry.get("account_id", account_id)
        if resolved_id is None:
            return None
        return PlayerInfo(
            account_id=str(resolved_id),
            nickname=str(entry.get("nickname") or ""),
            battles=_parse_battles(entry),
        )

    async def garage_vehicles(self, account_id: str, access_token: str) -> List[OwnedVehicle]:
        payload = await self._get(
            "/wot/tanks/stats/",
            {"account_id": account_id, "access_token": access_token, "fields": "tank_id,in_garage"},
        )
        data = payload.get("data")
        if not isinstance(data, Mapping):
            return []
        entries = data.get(str(account_id)) or []
        vehicles: List[OwnedVehicle] = []
        for entry in entries:
            if not isinstance(entry, Mapping):
                continue
            try:
                tank_id = int(entry["tank_id"])
            except (KeyError, TypeError, ValueError):
                continue
            vehicles.append(OwnedVehicle(tank_id=tank_id, in_garage=entry.get("in_garage") is True))
        return vehicles

    async def vehicle_info(self, tank_id: int) -> Optional[CatalogVehicle]:
        payload = await self._get(
            "/wot/encyclopedia/vehicles/",
            {"tank_id": tank_id, "fields": VEHICLE_FIELDS},
        )
        data = payload.get("data")
        if not isinstance(data, Mapping):
            return None
        entry = data.get(str(tank_id))
        if not isinstance(entry, Mapping):
            return None
        return _parse_vehicle(entry)

    async def encyclopedia_vehicles(self) -> Dict[int, CatalogVehicle]:
        """Fetch every encyclopedia page; any failing page fails the whole fetch."""
        vehicles: Dict[int, CatalogVehicle] = {}
        page_no = 1
        page_total = 1
        while page_no <= page_total:
            payload = await self._get(
                "/wot/encyclopedia/vehicles/",
                {"fields": VEHICLE_FIELDS, "limit": ENCYCLOPEDIA_PAGE_LIMIT, "page_no": page_no},
            )
            data = payload.get("data")
            if isinstance(data, Mapping):
                for entry in data.values():
                    if not isinstance(entry, Mapping):
                        continue
                    vehicle = _parse_vehicle(entry)
                    if vehicle is not None:
                        vehicles[vehicle.tank_id] = vehicle
            meta = payload.get("meta") or {}
            try:
                page_total = int(meta.get("page_total") or 1)
            except (TypeError, ValueError):
                page_total = 1
            page_no += 1
        return vehicles


__all__ = ["WargamingAPIError", "WargamingClient"]
