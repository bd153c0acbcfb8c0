"""Configuration loader for the apartment bot."""

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from apscheduler.triggers.cron import CronTrigger
from dotenv import load_dotenv

from .db import parse_database_url
from .exceptions import ConfigError
from .models.listing import SourceTag

DEFAULT_CONFIG_PATH = "./config/config.yaml"

REQUIRED_ENV_VARS = [
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_CHAT_ID",
    "APPLICANT_NAME",
    "APPLICANT_FIRST_NAME",
    "APPLICANT_PHONE",
    "APPLICANT_EMAIL",
    "DATABASE_URL",
]

APPLICATION_FAILURE_POLICIES = ("mark_seen", "retry")
FALLBACK_ID_STRATEGIES = ("index", "content")

DEFAULT_CONFIG: Dict[str, Any] = {
    "timezone": "Europe/Berlin",
    "request_timeout": 30,
    "schedules": {
        "wohnraumkarte": "*/2 7-18 * * 1-5",
        "gewobag": "*/3 7-22 * * 1-5",
        "degewo": "*/15 7-22 * * 1-5",
    },
    "sources": {
        "wohnraumkarte": {
            "enabled": True,
            "params": {
                "rentType": "miete",
                "city": "Berlin",
                "perimeter": "7",
                "immoType": "wohnung",
                "priceMax": "720",
                "sizeMin": "50",
                "minRooms": "Beliebig",
                "floor": "Beliebig",
                "bathtub": "0",
                "bathwindow": "0",
                "bathshower": "0",
                "furnished": "0",
                "kitchenEBK": "0",
                "toiletSeparate": "0",
                "disabilityAccess": "egal",
                "seniorFriendly": "0",
                "balcony": "egal",
                "subsidizedHousingPermit": "egal",
                "limit": "15",
                "offset": "0",
                "orderBy": "dist_asc",
                "dataSet": "deuwo",
            },
        },
        "gewobag": {
            "enabled": True,
            "districts": [
                "charlottenburg-wilmersdorf-charlottenburg",
                "friedrichshain-kreuzberg",
                "friedrichshain-kreuzberg-friedrichshain",
                "friedrichshain-kreuzberg-kreuzberg",
                "mitte",
                "mitte-gesundbrunnen",
                "mitte-moabit",
                "mitte-wedding",
                "neukoelln",
                "neukoelln-britz",
                "neukoelln-buckow",
                "neukoelln-neukoelln",
                "neukoelln-rudow",
                "pankow",
                "pankow-pankow",
                "pankow-prenzlauer-berg",
            ],
            "max_rent": 1100,
            "min_area": 34,
            "max_area": 80,
            "no_wbs": True,
            "fallback_id": "index",
        },
        "degewo": {
            "enabled": True,
            "cold_rent": "0_900",
            "districts": [
                "charlottenburg-wilmersdorf",
                "friedrichshain-kreuzberg",
                "lichtenberg",
                "mitte",
                "neukolln",
                "pankow",
                "tempelhof-schoneberg",
            ],
            "session_refresh_minutes": 30,
            "fallback_id": "index",
        },
    },
    "application": {
        "text": None,
        "current_employment": "angestellte",
        "income_type": "1",
        "monthly_net_income": "M_3",
        "referrer": "DeuWo",
        "data_set": "deuwo",
        "on_application_failure": "mark_seen",
    },
}


@dataclass
class Settings:
    """Everything the bot needs at startup: secrets from env plus the YAML config."""

    telegram_bot_token: str
    telegram_chat_id: str
    database_url: str
    applicant_name: str
    applicant_first_name: str
    applicant_phone: str
    applicant_email: str
    application_text: str
    config: Dict[str, Any]

    @property
    def timezone(self) -> str:
        return self.config["timezone"]

    @property
    def request_timeout(self) -> float:
        return float(self.config["request_timeout"])

    def source_config(self, source: str) -> Dict[str, Any]:
        cfg = dict(self.config["sources"].get(source, {}))
        cfg.setdefault("request_timeout", self.request_timeout)
        return cfg


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML merged over the built-in defaults.

    Args:
        config_path: Path to the YAML configuration file. When omitted the
                     default path is used if it exists, otherwise defaults only.

    Returns:
        Dictionary containing merged configuration

    Raises:
        FileNotFoundError: If an explicitly given config file doesn't exist
        ConfigError: If config is invalid
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path or DEFAULT_CONFIG_PATH)
    if path.exists():
        with open(path, "r") as f:
            overrides = yaml.safe_load(f) or {}
        if not isinstance(overrides, dict):
            raise ConfigError(f"Configuration file must contain a mapping: {path}")
        config = _merge(config, overrides)
    elif config_path:
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n"
            f"Copy config/config.example.yaml to config/config.yaml and customize it."
        )

    _validate_config(config)
    return config


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Load .env, the YAML config and the required environment variables.

    Raises:
        ConfigError: If any required variable is missing or the config is invalid
    """
    load_dotenv()
    config = load_config(config_path)

    missing: List[str] = [key for key in REQUIRED_ENV_VARS if not os.getenv(key)]
    application_text = _resolve_application_text(config)
    if not application_text:
        missing.append("APPLICATION_TEXT")
    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")
    parse_database_url(os.getenv("DATABASE_URL"))

    return Settings(
        telegram_bot_token=get_env("TELEGRAM_BOT_TOKEN", required=True),
        telegram_chat_id=get_env("TELEGRAM_CHAT_ID", required=True),
        database_url=get_env("DATABASE_URL", required=True),
        applicant_name=get_env("APPLICANT_NAME", required=True),
        applicant_first_name=get_env("APPLICANT_FIRST_NAME", required=True),
        applicant_phone=get_env("APPLICANT_PHONE", required=True),
        applicant_email=get_env("APPLICANT_EMAIL", required=True),
        application_text=application_text,
        config=config,
    )


def _resolve_application_text(config: Dict[str, Any]) -> Optional[str]:
    """APPLICATION_TEXT env, then APPLICATION_TEXT_FILE, then application.text."""
    text = os.getenv("APPLICATION_TEXT")
    if text:
        return text

    text_file = os.getenv("APPLICATION_TEXT_FILE")
    if text_file:
        path = Path(text_file)
        if not path.exists():
            raise ConfigError(f"APPLICATION_TEXT_FILE not found: {text_file}")
        return path.read_text(encoding="utf-8").strip() or None

    return config["application"].get("text") or None


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base. Lists and scalars are replaced."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(base[key], value)
        else:
            base[key] = value
    return base


def _validate_config(config: Dict[str, Any]) -> None:
    """Validate configuration structure."""
    known_sources = {tag.value for tag in SourceTag}

    for section in ("sources", "schedules", "application"):
        if not isinstance(config.get(section), dict):
            raise ConfigError(f"Config section must be a mapping: {section}")

    for source, source_config in config["sources"].items():
        if source not in known_sources:
            raise ConfigError(f"Unknown source in config: {source}. Available: {sorted(known_sources)}")
        if not isinstance(source_config, dict):
            raise ConfigError(f"sources.{source} must be a mapping, got {source_config!r}")
        fallback = source_config.get("fallback_id", "index")
        if fallback not in FALLBACK_ID_STRATEGIES:
            raise ConfigError(f"sources.{source}.fallback_id must be one of {FALLBACK_ID_STRATEGIES}")

    for source, expression in config["schedules"].items():
        if source not in known_sources:
            raise ConfigError(f"Unknown source in schedules: {source}")
        # null leaves the source unscheduled
        if expression is None:
            continue
        if not isinstance(expression, str):
            raise ConfigError(f"Invalid cron expression for {source}: {expression!r} (expected a string)")
        try:
            CronTrigger.from_crontab(expression, timezone=config["timezone"])
        except (ValueError, TypeError, KeyError) as e:
            raise ConfigError(f"Invalid cron expression for {source}: {expression!r} ({e})") from e

    policy = config["application"].get("on_application_failure")
    if policy not in APPLICATION_FAILURE_POLICIES:
        raise ConfigError(f"application.on_application_failure must be one of {APPLICATION_FAILURE_POLICIES}")

    timeout = config.get("request_timeout")
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError(f"request_timeout must be a positive number, got {timeout!r}")


def get_env(key: str, default: str = None, required: bool = False) -> str:
    """
    Get environment variable with optional default and required check.

    Args:
        key: Environment variable name
        default: Default value if not set
        required: If True, raise error when not set

    Returns:
        Environment variable value

    Raises:
        ConfigError: If required and not set
    """
    value = os.getenv(key, default)
    if required and not value:
        raise ConfigError(f"Required environment variable not set: {key}")
    return value
