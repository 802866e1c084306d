"""Configuration schemas for the Gemini Live voice bridge."""
from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Any

import voluptuous as vol
from voluptuous.humanize import humanize_error

from .const import (
    DEFAULT_FUNCTION_DECLARATIONS,
    DEFAULT_INSTRUCTIONS,
    DEFAULT_MODEL,
    DEFAULT_RELAY_NAME,
    DEFAULT_RELAY_URL,
    DEFAULT_TEMPERATURE,
    DEFAULT_VOICE,
)
from .exceptions import ConfigError

_LOGGER = logging.getLogger(__name__)

CONF_API_KEY = "api_key"
CONF_RELAY_URL = "relay_url"
CONF_RELAY_SECRET = "relay_secret"
CONF_RELAY_NAME = "relay_name"
CONF_MODEL = "model"
CONF_VOICE = "voice"
CONF_TEMPERATURE = "temperature"
CONF_INSTRUCTIONS = "instructions"
CONF_FUNCTION_DECLARATIONS = "function_declarations"

# Environment variable -> config key
ENV_MAPPING = {
    "GEMINI_API_KEY": CONF_API_KEY,
    "VOICE_BRIDGE_URL": CONF_RELAY_URL,
    "VOICE_BRIDGE_SECRET": CONF_RELAY_SECRET,
    "VOICE_BRIDGE_NAME": CONF_RELAY_NAME,
    "GEMINI_LIVE_MODEL": CONF_MODEL,
    "GEMINI_LIVE_VOICE": CONF_VOICE,
    "GEMINI_LIVE_INSTRUCTIONS": CONF_INSTRUCTIONS,
}

FUNCTION_NAME = vol.Match(r"^[A-Za-z_][A-Za-z0-9_]*$", msg="invalid function name")

STRING_PROPERTY_SCHEMA = vol.Schema(
    {
        vol.Required("type"): vol.All(vol.Lower, "string"),
        vol.Optional("description", default=""): str,
    }
)


def _required_are_declared(parameters: dict[str, Any]) -> dict[str, Any]:
    """Every required field must be a declared property."""
    missing = [name for name in parameters.get("required", []) if name not in parameters["properties"]]
    if missing:
        raise vol.Invalid(f"required fields not declared as properties: {', '.join(missing)}")
    return parameters


PARAMETERS_SCHEMA = vol.All(
    vol.Schema(
        {
            vol.Required("type", default="object"): vol.All(vol.Lower, "object"),
            vol.Required("properties", default=dict): {str: STRING_PROPERTY_SCHEMA},
            vol.Optional("required"): [str],
        }
    ),
    _required_are_declared,
)

FUNCTION_DECLARATION_SCHEMA = vol.Schema(
    {
        vol.Required("name"): vol.All(str, FUNCTION_NAME),
        vol.Required("description"): str,
        vol.Required("parameters", default=dict): PARAMETERS_SCHEMA,
    }
)


def _unique_names(declarations: list[dict[str, Any]]) -> list[dict[str, Any]]:
    names = [d["name"] for d in declarations]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise vol.Invalid(f"duplicate function declarations: {', '.join(duplicates)}")
    return declarations


CONFIG_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_API_KEY): vol.All(str, vol.Length(min=1)),
        vol.Required(CONF_RELAY_SECRET): vol.All(str, vol.Length(min=1)),
        vol.Optional(CONF_RELAY_URL, default=DEFAULT_RELAY_URL): vol.All(str, vol.Match(r"^https?://")),
        vol.Optional(CONF_RELAY_NAME, default=DEFAULT_RELAY_NAME): str,
        vol.Optional(CONF_MODEL, default=DEFAULT_MODEL): str,
        vol.Optional(CONF_VOICE, default=DEFAULT_VOICE): str,
        vol.Optional(CONF_TEMPERATURE, default=DEFAULT_TEMPERATURE): vol.All(
            vol.Coerce(float), vol.Range(min=0, max=2)
        ),
        vol.Optional(CONF_INSTRUCTIONS, default=DEFAULT_INSTRUCTIONS): str,
        vol.Optional(
            CONF_FUNCTION_DECLARATIONS,
            default=lambda: [dict(d) for d in DEFAULT_FUNCTION_DECLARATIONS],
        ): vol.All([FUNCTION_DECLARATION_SCHEMA], _unique_names),
    }
)


def validate_config(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Validate a configuration mapping, filling in defaults."""
    try:
        return CONFIG_SCHEMA(dict(raw))
    except vol.Invalid as err:
        raise ConfigError(f"Invalid bridge configuration: {humanize_error(dict(raw), err)}") from err


def config_from_env(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Build and validate a configuration from environment variables."""
    environ = os.environ if environ is None else environ
    raw = {key: environ[var] for var, key in ENV_MAPPING.items() if environ.get(var)}
    _LOGGER.debug("Loaded config keys from environment: %s", sorted(raw))
    return validate_config(raw)
