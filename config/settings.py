"""Configuration helpers for the Archi Render Studio project."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional


@dataclass(slots=True)
class AppConfig:
    """Centralized application configuration."""

    assets_dir: Path = Path("assets")
    output_dir: Path = Path("outputs")
    log_dir: Path = Path("logs")
    accounts_path: Path = Path("data/accounts.json")
    presets_path: Path = Path("assets/prompt_presets.json")
    gemini_api_key: Optional[str] = None
    image_model_id: str = "gemini-3-pro-image-preview"
    analysis_model_id: str = "gemini-3.1-pro"
    max_history: int = 20
    max_undo_steps: int = 20
    max_retries: int = 5
    initial_retry_delay_ms: int = 2000
    style_request_pause_ms: int = 1000
    max_saved_images: int = 100
    default_credits: int = 50
    user_id: str = "local"
    metadata: dict[str, Any] = field(default_factory=dict)


def _load_env_file(path: Path) -> None:
    """Populate environment variables from a simple KEY=VALUE .env file."""
    if not path.exists():
        return

    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        os.environ[key.strip()] = value.strip()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Return an AppConfig instance with environment-aware settings."""
    env_path = Path(config_path) if config_path else Path(".env")
    _load_env_file(env_path)

    api_key = (
        os.getenv("GEMINI_API_KEY")
        or os.getenv("API_KEY")
        or os.getenv("GOOGLE_API_KEY")
    )
    defaults = AppConfig()

    output_dir = Path(os.getenv("OUTPUT_DIR", str(defaults.output_dir))).expanduser()
    log_dir = Path(os.getenv("LOG_DIR", str(defaults.log_dir))).expanduser()
    accounts_path = Path(os.getenv("ACCOUNTS_PATH", str(defaults.accounts_path))).expanduser()

    metadata: dict[str, Any] = {}
    reference_links = {
        "interior": os.getenv("INTERIOR_REFERENCE_LINK", ""),
        "exterior": os.getenv("EXTERIOR_REFERENCE_LINK", ""),
    }
    if any(reference_links.values()):
        metadata["reference_links"] = reference_links

    return AppConfig(
        output_dir=output_dir,
        log_dir=log_dir,
        accounts_path=accounts_path,
        gemini_api_key=api_key or None,
        image_model_id=os.getenv("IMAGE_MODEL_ID") or defaults.image_model_id,
        analysis_model_id=os.getenv("ANALYSIS_MODEL_ID") or defaults.analysis_model_id,
        max_retries=_int_env("MAX_RETRIES", defaults.max_retries),
        initial_retry_delay_ms=_int_env("INITIAL_RETRY_DELAY_MS", defaults.initial_retry_delay_ms),
        default_credits=_int_env("DEFAULT_CREDITS", defaults.default_credits),
        user_id=os.getenv("STUDIO_USER_ID") or defaults.user_id,
        metadata=metadata,
    )
