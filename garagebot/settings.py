"""Environment-driven configuration for GarageBot."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .utils import float_from_env, int_from_env, str_from_env
from .wot_api import DEFAULT_API_BASE

DEFAULT_APP_LINK = "https://discord.com/channels/@me"


@dataclass(frozen=True)
class BotSettings:
    discord_token: str
    application_id: str
    callback_url: str
    port: int = 8080
    host: str = "0.0.0.0"
    bot_name: str = "GarageBot"
    app_link: str = DEFAULT_APP_LINK
    api_base: str = DEFAULT_API_BASE
    api_timeout: float = 10.0
    command_prefix: str = "!"


def _required(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise RuntimeError(f"Missing {name}. Set it in your environment or .env file.")
    return value


def load_settings() -> BotSettings:
    port = int_from_env("GARAGEBOT_PORT", int_from_env("PORT", 8080))
    timeout = max(1.0, float_from_env("WG_API_TIMEOUT", 10.0))
    return BotSettings(
        discord_token=_required("DISCORD_TOKEN"),
        application_id=_required("WG_APPLICATION_ID"),
        callback_url=_required("GARAGEBOT_CALLBACK_URL").rstrip("/"),
        port=port,
        host=str_from_env("GARAGEBOT_HOST", "0.0.0.0"),
        bot_name=str_from_env("GARAGEBOT_NAME", "GarageBot"),
        app_link=str_from_env("GARAGEBOT_APP_LINK", DEFAULT_APP_LINK),
        api_base=str_from_env("WG_API_BASE", DEFAULT_API_BASE).rstrip("/"),
        api_timeout=timeout,
        command_prefix=str_from_env("GARAGEBOT_PREFIX", "!"),
    )


__all__ = ["BotSettings", "load_settings"]
