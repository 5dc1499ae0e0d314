"""GarageBot package: Wargaming account linking and random garage draws for Discord."""

from . import catalog, draw, garage, interactions, models, settings, state, utils, web, wot_api  # noqa: F401

__all__ = [
    "catalog",
    "draw",
    "garage",
    "interactions",
    "models",
    "settings",
    "state",
    "utils",
    "web",
    "wot_api",
]
