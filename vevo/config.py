"""Configuration loader for Vevo."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List
import os
import yaml

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "default.yaml"
USER_CONFIG_PATH = Path.home() / ".config" / "vevo" / "config.yaml"


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config() -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if DEFAULT_CONFIG_PATH.exists():
        data = yaml.safe_load(DEFAULT_CONFIG_PATH.read_text()) or {}
    if USER_CONFIG_PATH.exists():
        override = yaml.safe_load(USER_CONFIG_PATH.read_text()) or {}
        data = _deep_merge(data, override)

    # Environment overrides - Server
    host = os.getenv("VEVO_HOST")
    port = os.getenv("VEVO_PORT") or os.getenv("PORT")
    if host:
        data.setdefault("server", {})["host"] = host
    if port:
        try:
            data.setdefault("server", {})["port"] = int(port)
        except ValueError:
            pass

    # Environment overrides - Data directory
    data_dir = os.getenv("VEVO_DATA_DIR")
    if data_dir:
        data["data_dir"] = data_dir

    # Environment overrides - Providers
    providers = os.getenv("VEVO_PROVIDERS")
    if providers:
        enabled = [name.strip() for name in providers.split(",") if name.strip()]
        data.setdefault("providers", {})["enabled"] = enabled

    # Environment overrides - Persona
    retries = os.getenv("VEVO_LEAKAGE_RETRIES")
    if retries:
        try:
            data.setdefault("persona", {})["leakage_retries"] = int(retries)
        except ValueError:
            pass

    # Environment overrides - Learning review
    interval = os.getenv("VEVO_REVIEW_INTERVAL")
    if interval:
        try:
            data.setdefault("learning", {})["review_interval_seconds"] = int(interval)
        except ValueError:
            pass

    return data


@dataclass
class Config:
    raw: Dict[str, Any]

    @property
    def server(self) -> Dict[str, Any]:
        return self.raw.get("server", {})

    @property
    def data_dir(self) -> Path:
        default = str(Path.home() / ".vevo")
        return Path(self.raw.get("data_dir") or default).expanduser()

    @property
    def logs_dir(self) -> Path:
        return self.data_dir / "logs"

    @property
    def persona(self) -> Dict[str, Any]:
        return self.raw.get("persona", {})

    @property
    def leakage_retries(self) -> int:
        """Upper bound on leakage-avoidance attempts per generation. Default 3."""
        return max(1, int(self.persona.get("leakage_retries", 3)))

    @property
    def providers(self) -> Dict[str, Any]:
        return self.raw.get("providers", {})

    @property
    def enabled_providers(self) -> List[str]:
        return list(self.providers.get("enabled", ["openrouter"]))

    @property
    def provider_timeout_seconds(self) -> float:
        return float(self.providers.get("timeout_seconds", 60))

    def provider(self, name: str) -> Dict[str, Any]:
        settings = self.providers.get(name)
        return settings if isinstance(settings, dict) else {}

    @property
    def self_edit(self) -> Dict[str, Any]:
        return self.raw.get("self_edit", {})

    @property
    def guardrail(self) -> Dict[str, Any]:
        return self.raw.get("guardrail", {})

    @property
    def protected_patterns(self) -> List[str]:
        return list(self.guardrail.get("protected_patterns", ["server.py", ".env", "/core"]))

    @property
    def learning(self) -> Dict[str, Any]:
        return self.raw.get("learning", {})

    @property
    def review_interval_seconds(self) -> int:
        """Seconds between scheduled learning reviews; 0 disables the schedule."""
        return int(self.learning.get("review_interval_seconds", 3600))


def get_config() -> Config:
    return Config(load_config())
