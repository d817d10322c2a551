"""
Relay configuration.

All deployment knobs live in a single RelaySettings object that is built once
at startup by load_settings() and handed to the FastAPI app. Nothing else in
the package reads os.environ directly.

Environment variables
---------------------
ANALYSIS_ENDPOINT         Full URL of the food analysis service's POST route.
FOOD_API_URL              Legacy alias, used when ANALYSIS_ENDPOINT is unset.
PORT                      Port uvicorn listens on (default: 3000).
REQUEST_TIMEOUT_SECONDS   Ceiling for every outbound call (default: 60).
ANALYSIS_IMAGE_TRANSFER   Wire shape sent to the analysis service:
                          "url" (imageUrl) or "base64" (imageBase64).
CLIQ_API_BASE             Base URL for chat platform callbacks.
CALLBACK_AUTH_SCHEME      Authorization scheme for callbacks (default: Zoho-oauthtoken).
BOT_NAME                  Name echoed back in webhook replies.
UPLOAD_TMP_DIR            Directory for request-scoped upload temp files.
CORS_ORIGINS              Comma-separated list of allowed origins.
LOG_LEVEL                 Root log level (default: INFO).
"""

import os
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_ANALYSIS_ENDPOINT = "https://food-scanner-server-f486.onrender.com/analyze"
DEFAULT_CALLBACK_BASE_URL = "https://cliq.zoho.com/api/v2"

# Must cover the analysis host's cold start.
DEFAULT_REQUEST_TIMEOUT = 60.0

ImageTransfer = Literal["url", "base64"]


class RelaySettings(BaseModel):
    """Explicit configuration passed into the relay at startup."""

    model_config = {"frozen": True}

    analysis_endpoint: str = DEFAULT_ANALYSIS_ENDPOINT
    listen_port: int = 3000
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)
    image_transfer: ImageTransfer = "url"
    callback_base_url: str = DEFAULT_CALLBACK_BASE_URL
    callback_auth_scheme: str = "Zoho-oauthtoken"
    bot_name: str = "Calorie Scanner"
    upload_tmp_dir: Optional[str] = None
    cors_origins: List[str] = []
    log_level: str = "INFO"


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _parse_timeout(name: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _parse_transfer(name: str, raw: str) -> str:
    value = raw.strip().lower()
    if value not in ("url", "base64"):
        raise ValueError(f"{name} must be 'url' or 'base64', got {raw!r}")
    return value


def _parse_origins(raw: str) -> List[str]:
    """Split a comma-separated origin list, dropping blanks and duplicates."""
    seen: set = set()
    origins: List[str] = []
    for origin in (o.strip() for o in raw.split(",")):
        if origin and origin not in seen:
            seen.add(origin)
            origins.append(origin)
    return origins


def load_settings(env_file: Optional[str] = None) -> RelaySettings:
    """
    Build RelaySettings from the environment.

    A .env file (or env_file, when given) is loaded first without overriding
    variables that are already set. Unset variables keep their defaults.

    Raises:
        ValueError: if a variable is present but cannot be parsed.
    """
    load_dotenv(env_file, override=False)

    values: dict = {}

    endpoint = os.getenv("ANALYSIS_ENDPOINT") or os.getenv("FOOD_API_URL")
    if endpoint:
        values["analysis_endpoint"] = endpoint.strip()

    port = os.getenv("PORT", "").strip()
    if port:
        values["listen_port"] = _parse_int("PORT", port)

    timeout = os.getenv("REQUEST_TIMEOUT_SECONDS", "").strip()
    if timeout:
        values["request_timeout"] = _parse_timeout("REQUEST_TIMEOUT_SECONDS", timeout)

    transfer = os.getenv("ANALYSIS_IMAGE_TRANSFER", "").strip()
    if transfer:
        values["image_transfer"] = _parse_transfer("ANALYSIS_IMAGE_TRANSFER", transfer)

    callback_base = os.getenv("CLIQ_API_BASE", "").strip()
    if callback_base:
        values["callback_base_url"] = callback_base.rstrip("/")

    scheme = os.getenv("CALLBACK_AUTH_SCHEME", "").strip()
    if scheme:
        values["callback_auth_scheme"] = scheme

    bot_name = os.getenv("BOT_NAME", "").strip()
    if bot_name:
        values["bot_name"] = bot_name

    tmp_dir = os.getenv("UPLOAD_TMP_DIR", "").strip()
    if tmp_dir:
        values["upload_tmp_dir"] = tmp_dir

    cors = os.getenv("CORS_ORIGINS", "").strip()
    if cors:
        values["cors_origins"] = _parse_origins(cors)

    log_level = os.getenv("LOG_LEVEL", "").strip()
    if log_level:
        values["log_level"] = log_level.upper()

    return RelaySettings(**values)
