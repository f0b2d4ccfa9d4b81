from __future__ import annotations

import os
from dataclasses import dataclass, fields
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf

from .errors import ConfigurationError

load_dotenv()

_HERE = Path(__file__).resolve()
_CANDIDATE_CONFIG_PATHS = [parent / "config/cloud.yaml" for parent in _HERE.parents[:5]]


def _config_path() -> Path:
    override = os.environ.get("FILEIT_CONFIG")
    if override:
        return Path(override)
    path = next((path for path in _CANDIDATE_CONFIG_PATHS if path.exists()), None)
    if path is None:
        raise FileNotFoundError("config/cloud.yaml could not be located; set FILEIT_CONFIG to its path.")
    return path


@dataclass(frozen=True)
class CloudSettings:
    """Resolved service settings, one attribute per key in cloud.yaml."""

    project_id: str = ""
    application_name: str = "FileIt"
    account_id: str = ""
    private_key: str = ""
    api_url: str = "https://storage.googleapis.com"
    bucket_name: str = ""
    hmac_access_id: str = ""
    hmac_secret: str = ""
    book_index: str = "test.JSON"
    master_json_path: str = "data/master.json"
    static_path: str = "data/static"
    image_extension: str = ".jpg"
    render_dpi: int = 100
    content_url_expiry: int = 120
    image_url_expiry: int = 20000
    credentials_db: str = "data/fileit.db"
    login_attempts_per_minute: int = 5

    @classmethod
    def from_container(cls, container: Dict[str, Any]) -> "CloudSettings":
        known = {f.name: f for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in container.items():
            if key not in known or value is None:
                continue
            values[key] = int(value) if known[key].type == "int" else str(value)
        return cls(**values)

    def require(self, name: str) -> str:
        value = getattr(self, name)
        if not value:
            raise ConfigurationError(f"'{name}' must be set in cloud.yaml or the environment")
        return value


@lru_cache(maxsize=1)
def _load_config() -> DictConfig:
    path = _config_path()
    if not path.exists():
        raise FileNotFoundError(f"Config not found at {path}")
    return OmegaConf.load(path)


@lru_cache(maxsize=1)
def get_settings() -> CloudSettings:
    container = OmegaConf.to_container(_load_config(), resolve=True)
    return CloudSettings.from_container(container)  # type: ignore[arg-type]


def reset_settings() -> CloudSettings:
    """Drop the cached config so the next read picks up file and environment changes."""
    _load_config.cache_clear()
    get_settings.cache_clear()
    return get_settings()
