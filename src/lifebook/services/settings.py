"""Persistent lifebook settings.

Settings live in ``~/.lifebook/settings.json``. The API key never touches that
file in clear text: it is stored as a Fernet token whose key sits next to the
settings file. Precedence when loading is file, then command-line overrides,
then ``LIFEBOOK_*`` environment variables.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from cryptography.fernet import Fernet, InvalidToken

from ..ai.client import ClientSettings
from ..conversation.flow_advisor import FlowThresholds

__all__ = [
    "FlowThresholdSettings",
    "Settings",
    "SettingsStore",
    "SecretVault",
    "parse_bool",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)

_SETTINGS_DIR = Path.home() / ".lifebook"
_SETTINGS_VERSION = 1
_API_KEY_FIELD = "api_key_ciphertext"
_TRUE_VALUES = frozenset({"1", "true", "yes", "on", "debug"})


def parse_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


_ENV_OVERRIDES: Mapping[str, tuple[str, Callable[[str], Any]]] = {
    "LIFEBOOK_API_KEY": ("api_key", str),
    "LIFEBOOK_BASE_URL": ("base_url", str),
    "LIFEBOOK_MODEL": ("model", str),
    "LIFEBOOK_ORGANIZATION": ("organization", str),
    "LIFEBOOK_DEBUG_LOGGING": ("debug_logging", parse_bool),
    "LIFEBOOK_REQUEST_TIMEOUT": ("request_timeout", float),
    "LIFEBOOK_TEMPERATURE": ("temperature", float),
    "LIFEBOOK_CONTEXT_RADIUS": ("context_radius", int),
    "LIFEBOOK_FLOW_WINDOW": ("flow_window", int),
}


@dataclass(slots=True)
class FlowThresholdSettings:
    """Advisor thresholds exposed for tuning without code changes."""

    consecutive_limit: int = 6
    trend_change_percent: float = 40.0
    significant_decline_percent: float = 60.0
    low_engagement_below: float = 0.5
    high_engagement_above: float = 1.5
    engagement_window: int = 3

    @classmethod
    def from_mapping(
        cls, payload: Mapping[str, Any], *, base: "FlowThresholdSettings | None" = None
    ) -> "FlowThresholdSettings":
        """Build thresholds from ``payload`` on top of ``base``.

        Unknown keys are dropped; values that cannot be read as the field's
        number type are logged and keep the value from ``base``.
        """

        start = base if base is not None else cls()
        return replace(start, **_typed_values(payload, start, section="flow"))

    def to_thresholds(self) -> FlowThresholds:
        return FlowThresholds(**asdict(self))


@dataclass(slots=True)
class Settings:
    """Everything a lifebook session can be configured with."""

    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    organization: str | None = None
    request_timeout: float = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    debug_logging: bool = False
    context_radius: int = 500
    # Turns handed to the flow advisor; must exceed flow.consecutive_limit for a streak to trigger.
    flow_window: int = 8
    project_title: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    flow: FlowThresholdSettings = field(default_factory=FlowThresholdSettings)

    def client_settings(self) -> ClientSettings:
        return ClientSettings(
            base_url=self.base_url,
            api_key=self.api_key,
            model=self.model,
            organization=self.organization,
            request_timeout=self.request_timeout,
            max_retries=self.max_retries,
            retry_min_seconds=self.retry_min_seconds,
            retry_max_seconds=self.retry_max_seconds,
            metadata={str(key): str(value) for key, value in self.metadata.items()} or None,
            debug_logging=self.debug_logging,
        )


class SecretVault:
    """Fernet encryption for secrets kept in the settings file.

    Tokens carry a ``fernet:`` prefix so a future backend can be told apart.
    The key file is created on first use with owner-only permissions.
    """

    strategy = "fernet"

    def __init__(self, *, key_path: Path | None = None) -> None:
        self._key_path = key_path or (_SETTINGS_DIR / "settings.key")
        self._fernet: Fernet | None = None

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        token = self._cipher().encrypt(secret.encode("utf-8")).decode("ascii")
        return f"{self.strategy}:{token}"

    def decrypt(self, token: str | None) -> str:
        if not token:
            return ""
        prefix, _, payload = token.rpartition(":") if ":" in token else ("", "", token)
        if prefix and prefix != self.strategy:
            LOGGER.warning("Unknown secret token prefix %s; returning ciphertext.", prefix)
            return token
        try:
            return self._cipher().decrypt(payload.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Invalid Fernet token") from exc

    def _cipher(self) -> Fernet:
        if self._fernet is None:
            if self._key_path.exists():
                key = self._key_path.read_bytes().strip()
            else:
                key = Fernet.generate_key()
                _write_atomic(self._key_path, key, private=True)
            self._fernet = Fernet(key)
        return self._fernet


class SettingsStore:
    """Reads and writes :class:`Settings` as versioned JSON."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or (_SETTINGS_DIR / "settings.json")
        self._vault = vault or SecretVault(key_path=self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Return the stored settings with overrides applied.

        A missing or corrupt file yields defaults. Files written by an older
        version, or still holding a plaintext API key, are rewritten in place.
        """

        payload = self._read_payload()
        settings = Settings()
        if payload:
            settings, rewrite = self._from_payload(payload)
            if rewrite or payload.get("version") != _SETTINGS_VERSION:
                try:
                    self.save(settings)
                except OSError as exc:  # pragma: no cover - read-only home directories
                    LOGGER.warning("Failed to migrate settings file %s: %s", self._path, exc)

        if overrides:
            settings = _merge(settings, overrides, source="CLI")
        return _merge(settings, _environment_overrides(), source="environment")

    def save(self, settings: Settings) -> Path:
        data = asdict(settings)
        api_key = data.pop("api_key", "")
        if api_key:
            data[_API_KEY_FIELD] = self._vault.encrypt(api_key)
        data["version"] = _SETTINGS_VERSION
        data["secret_backend"] = self._vault.strategy
        _write_atomic(self._path, json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False).encode("utf-8"))
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _from_payload(self, payload: Dict[str, Any]) -> tuple[Settings, bool]:
        ciphertext = payload.pop(_API_KEY_FIELD, None)
        plaintext = payload.pop("api_key", None)
        rewrite = False
        api_key = ""
        if ciphertext:
            try:
                api_key = self._vault.decrypt(ciphertext)
            except ValueError as exc:
                LOGGER.warning("Unable to decrypt API key: %s", exc)
        elif plaintext:
            LOGGER.info("Found plaintext API key in %s; encrypting it.", self._path)
            api_key, rewrite = str(plaintext), True

        known = {item.name for item in fields(Settings)} - {"api_key"}
        data = {key: value for key, value in payload.items() if key in known}
        if not isinstance(data.get("metadata", {}), Mapping):
            LOGGER.debug("Ignoring non-mapping metadata of type %s", type(data["metadata"]).__name__)
            del data["metadata"]
        flow = data.pop("flow", None)
        if isinstance(flow, Mapping):
            data["flow"] = FlowThresholdSettings.from_mapping(flow)
        defaults = Settings()
        settings = replace(defaults, **_typed_values(data, defaults))
        return replace(settings, api_key=api_key), rewrite

    def _read_payload(self) -> Dict[str, Any]:
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload


def _merge(settings: Settings, overrides: Mapping[str, Any], *, source: str) -> Settings:
    known = {item.name for item in fields(Settings)}
    changes = {key: value for key, value in overrides.items() if key in known and value is not None}
    metadata = changes.pop("metadata", None)
    flow = changes.pop("flow", None)
    changes = _typed_values(changes, settings)
    if isinstance(metadata, Mapping):
        changes["metadata"] = {**settings.metadata, **metadata}
    elif metadata is not None:
        LOGGER.warning("Ignoring %s metadata override of type %s", source, type(metadata).__name__)
    if isinstance(flow, FlowThresholdSettings):
        changes["flow"] = flow
    elif isinstance(flow, Mapping):
        changes["flow"] = FlowThresholdSettings.from_mapping(flow, base=settings.flow)
    elif flow is not None:
        LOGGER.warning("Ignoring %s flow override of type %s", source, type(flow).__name__)
    if not changes:
        return settings
    LOGGER.debug("Applying %s settings overrides: %s", source, sorted(changes))
    return replace(settings, **changes)


def _typed_values(payload: Mapping[str, Any], current: Any, *, section: str = "settings") -> Dict[str, Any]:
    """Keep the known keys of ``payload`` whose values fit the type already held by ``current``."""

    known = {item.name for item in fields(current)}
    typed: Dict[str, Any] = {}
    for key, value in payload.items():
        if key not in known:
            continue
        try:
            typed[key] = _coerce_like(value, getattr(current, key))
        except (TypeError, ValueError):
            LOGGER.warning("Ignoring %s.%s=%r: not a valid value", section, key, value)
    return typed


def _coerce_like(value: Any, current: Any) -> Any:
    kind = type(current)
    if kind is bool:
        if isinstance(value, str):
            return parse_bool(value)
        if not isinstance(value, bool):
            raise TypeError(f"expected a boolean, got {type(value).__name__}")
        return value
    if kind in (int, float):
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise TypeError(f"expected a number, got {type(value).__name__}")
        if kind is int and isinstance(value, float) and not value.is_integer():
            raise ValueError(f"expected an integer, got {value}")
        return kind(value)
    if kind is str and not isinstance(value, str):
        raise TypeError(f"expected text, got {type(value).__name__}")
    return value


def _environment_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for env_name, (field_name, convert) in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is None:
            continue
        try:
            overrides[field_name] = convert(raw)
        except ValueError:
            LOGGER.warning("Ignoring %s=%r: expected %s", env_name, raw, convert.__name__)
    return overrides


def _write_atomic(path: Path, body: bytes, *, private: bool = False) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    staging = path.with_suffix(path.suffix + ".tmp")
    staging.write_bytes(body)
    if private and os.name != "nt":  # pragma: no cover - depends on OS
        os.chmod(staging, 0o600)
    staging.replace(path)


def redact_secret(value: str) -> str:
    """Mask all but the first and last two characters of ``value``."""

    stripped = (value or "").strip()
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"
