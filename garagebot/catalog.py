"""Vehicle encyclopedia cache, filled once at startup."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterator, Mapping, Optional

from .models import CatalogVehicle
from .wot_api import WargamingAPIError, WargamingClient

logger = logging.getLogger("garagebot.catalog")


class VehicleCatalog:
    """Read-mostly map of tank id to static vehicle metadata."""

    def __init__(self, vehicles: Optional[Mapping[int, CatalogVehicle]] = None) -> None:
        self._vehicles: Dict[int, CatalogVehicle] = {}
        self._loaded = asyncio.Event()
        if vehicles is not None:
            self.replace(vehicles)

    @property
    def is_loaded(self) -> bool:
        return self._loaded.is_set()

    def replace(self, vehicles: Mapping[int, CatalogVehicle]) -> None:
        self._vehicles = dict(vehicles)
        self._loaded.set()

    def get(self, tank_id: int) -> Optional[CatalogVehicle]:
        return self._vehicles.get(tank_id)

    def __contains__(self, tank_id: object) -> bool:
        return tank_id in self._vehicles

    def __len__(self) -> int:
        return len(self._vehicles)

    def __iter__(self) -> Iterator[int]:
        return iter(self._vehicles)

    async def wait_until_loaded(self, timeout: Optional[float] = None) -> bool:
        try:
            await asyncio.wait_for(self._loaded.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def load(self, client: WargamingClient) -> bool:
        """Populate the cache from the encyclopedia. No retry on failure."""
        logger.info("Loading vehicle encyclopedia from %s", client.api_base)
        try:
            vehicles = await client.encyclopedia_vehicles()
        except WargamingAPIError as exc:
            logger.error("Vehicle encyclopedia load failed; catalog stays empty: %s", exc)
            return False
        if not vehicles:
            logger.error("Vehicle encyclopedia returned no vehicles; catalog stays empty.")
            return False
        self.replace(vehicles)
        logger.info("Vehicle catalog loaded with %s vehicles.", len(vehicles))
        return True


__all__ = ["VehicleCatalog"]
