"""Run configuration for ROM curation.

Configuration is a JSON file with camelCase keys:

    {
        "inputFolder": "/roms",
        "outputFolder": "/roms-curated",
        "systems": ["snes", "megadrive"],
        "preferredRegions": ["USA", "World", "Europe"],
        "screenScraper": {"enabled": true, "devId": "...", "devPassword": "..."}
    }

ScreenScraper credentials missing from the file are read from the
SCREENSCRAPER_DEVID, SCREENSCRAPER_DEVPASSWORD, SCREENSCRAPER_USER and
SCREENSCRAPER_PASSWORD environment variables.
"""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

from .records import MEDIA_TYPES, Preferences

logger = logging.getLogger(__name__)

SCREENSCRAPER_MEDIA_TYPES = ("screenshot", "box2d", "box3d", "wheel", "video")

DEFAULT_CONFIG = {
    "systems": "all",
    "preferredRegions": ["USA", "World", "Europe", "Australia"],
    "preferredLanguages": ["En"],
    "ignoreRegions": [],
    "ignoreLanguages": [],
    "mediaTypes": ["images", "videos"],
    "dryRun": True,
}

# screenScraper key -> environment variable used when the key is absent
CREDENTIAL_ENV_VARS = {
    "devId": "SCREENSCRAPER_DEVID",
    "devPassword": "SCREENSCRAPER_DEVPASSWORD",
    "userId": "SCREENSCRAPER_USER",
    "userPassword": "SCREENSCRAPER_PASSWORD",
}


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""


@dataclass
class ScreenScraperConfig:
    enabled: bool = False
    dev_id: str = ""
    dev_password: str = ""
    user_id: str | None = None
    user_password: str | None = None
    download_media: bool = False
    media_types: list[str] = field(default_factory=lambda: ["screenshot"])


@dataclass
class CurationConfig:
    input_folder: str
    output_folder: str
    systems: list[str] | str = "all"
    preferred_regions: list[str] = field(default_factory=list)
    preferred_languages: list[str] = field(default_factory=list)
    ignore_regions: list[str] = field(default_factory=list)
    ignore_languages: list[str] = field(default_factory=list)
    media_types: list[str] = field(default_factory=list)
    report_file: str | None = None
    dry_run: bool = True
    screenscraper: ScreenScraperConfig | None = None

    @property
    def preferences(self) -> Preferences:
        return Preferences(
            preferred_regions=list(self.preferred_regions),
            preferred_languages=list(self.preferred_languages),
            ignore_regions=list(self.ignore_regions),
            ignore_languages=list(self.ignore_languages),
        )

    @property
    def screenscraper_enabled(self) -> bool:
        return self.screenscraper is not None and self.screenscraper.enabled


def _is_string_list(value) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def _validate_screenscraper(ss) -> list[str]:
    if not isinstance(ss, dict):
        return ["screenScraper must be an object"]

    errors = []
    if not isinstance(ss.get("enabled"), bool):
        errors.append("screenScraper.enabled must be a boolean")
    if ss.get("enabled"):
        if not ss.get("devId") or not isinstance(ss.get("devId"), str):
            errors.append("screenScraper.devId is required when enabled")
        if not ss.get("devPassword") or not isinstance(ss.get("devPassword"), str):
            errors.append("screenScraper.devPassword is required when enabled")
    for key in ("userId", "userPassword"):
        if ss.get(key) is not None and not isinstance(ss[key], str):
            errors.append(f"screenScraper.{key} must be a string if provided")
    if ss.get("downloadMedia") is not None and not isinstance(ss["downloadMedia"], bool):
        errors.append("screenScraper.downloadMedia must be a boolean if provided")
    if ss.get("mediaTypes") is not None:
        media_types = ss["mediaTypes"]
        if not _is_string_list(media_types) or any(
            m not in SCREENSCRAPER_MEDIA_TYPES for m in media_types
        ):
            errors.append(
                "screenScraper.mediaTypes must be a list containing "
                + ", ".join(f'"{m}"' for m in SCREENSCRAPER_MEDIA_TYPES)
            )
    return errors


def validate_config(data: dict) -> list[str]:
    """Check a merged configuration dict.

    Returns:
        Every validation problem found (empty when valid).
    """
    errors = []

    for key in ("inputFolder", "outputFolder"):
        if not data.get(key) or not isinstance(data.get(key), str):
            errors.append(f"{key} is required and must be a string")

    systems = data.get("systems")
    if systems != "all" and not _is_string_list(systems):
        errors.append('systems must be "all" or a list of strings')

    for key in ("preferredRegions", "preferredLanguages", "ignoreRegions", "ignoreLanguages"):
        if not _is_string_list(data.get(key)):
            errors.append(f"{key} must be a list of strings")

    media_types = data.get("mediaTypes")
    if not _is_string_list(media_types) or any(m not in MEDIA_TYPES for m in media_types):
        errors.append('mediaTypes must be a list containing "images", "videos" and/or "manual"')

    if data.get("reportFile") is not None and not isinstance(data["reportFile"], str):
        errors.append("reportFile must be a string if provided")

    if not isinstance(data.get("dryRun"), bool):
        errors.append("dryRun must be a boolean")

    if data.get("screenScraper") is not None:
        errors.extend(_validate_screenscraper(data["screenScraper"]))

    return errors


def _apply_credential_env(ss: dict) -> dict:
    """Fill missing ScreenScraper credentials from the environment."""
    ss = dict(ss)
    for key, env_var in CREDENTIAL_ENV_VARS.items():
        if not ss.get(key) and os.environ.get(env_var):
            ss[key] = os.environ[env_var]
    return ss


def _build_screenscraper(ss: dict | None) -> ScreenScraperConfig | None:
    if ss is None:
        return None
    return ScreenScraperConfig(
        enabled=ss.get("enabled", False),
        dev_id=ss.get("devId") or "",
        dev_password=ss.get("devPassword") or "",
        user_id=ss.get("userId"),
        user_password=ss.get("userPassword"),
        download_media=ss.get("downloadMedia", False),
        media_types=list(ss.get("mediaTypes") or ["screenshot"]),
    )


def config_from_dict(data: dict) -> CurationConfig:
    """Merge a parsed configuration over the defaults, validate and build it.

    Raises:
        ConfigError: Listing every validation problem.
    """
    if not isinstance(data, dict):
        raise ConfigError("Invalid configuration: top level must be a JSON object")

    merged = {**DEFAULT_CONFIG, **data}
    if isinstance(merged.get("screenScraper"), dict):
        merged["screenScraper"] = _apply_credential_env(merged["screenScraper"])

    errors = validate_config(merged)
    if errors:
        raise ConfigError(
            "Invalid configuration:\n" + "\n".join(f"  - {e}" for e in errors)
        )

    return CurationConfig(
        input_folder=merged["inputFolder"],
        output_folder=merged["outputFolder"],
        systems=merged["systems"],
        preferred_regions=list(merged["preferredRegions"]),
        preferred_languages=list(merged["preferredLanguages"]),
        ignore_regions=list(merged["ignoreRegions"]),
        ignore_languages=list(merged["ignoreLanguages"]),
        media_types=list(merged["mediaTypes"]),
        report_file=merged.get("reportFile"),
        dry_run=merged["dryRun"],
        screenscraper=_build_screenscraper(merged.get("screenScraper")),
    )


def load_config(path: str | Path) -> CurationConfig:
    """Load configuration from a JSON file.

    Raises:
        ConfigError: File missing, not valid JSON, or failing validation.
    """
    config_path = Path(path).resolve()
    try:
        with open(config_path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Configuration file not found: {config_path}")
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in configuration file: {e}")

    config = config_from_dict(data)
    logger.debug("Loaded configuration from %s", config_path)
    return config


def apply_overrides(
    config: CurationConfig,
    dry_run: bool | None = None,
    systems: list[str] | None = None,
    output_folder: str | None = None,
    report_file: str | None = None,
) -> CurationConfig:
    """Return a copy of config with command-line overrides applied."""
    changes = {}
    if dry_run is not None:
        changes["dry_run"] = dry_run
    if systems:
        changes["systems"] = list(systems)
    if output_folder:
        changes["output_folder"] = output_folder
    if report_file is not None:
        changes["report_file"] = report_file
    return replace(config, **changes)
