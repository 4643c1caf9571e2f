"""Runtime configuration for capabilities, retries and process reaping."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_SPEC_GLOB = "spec/**/*.py"
DEFAULT_CAPABILITIES = "chrome|1"


class ConfigError(ValueError):
    """Fatal startup error: bad settings, unknown capability or missing spec file."""


@dataclass(slots=True, frozen=True)
class CapabilitySettings:
    """Configured execution profile."""

    name: str
    concurrency: int = 1


@dataclass(slots=True)
class Settings:
    """Run settings grouped by concern."""

    capabilities: dict[str, CapabilitySettings] = field(
        default_factory=lambda: {"chrome": CapabilitySettings(name="chrome")},
    )
    retries: int = 0
    spec_glob: str = DEFAULT_SPEC_GLOB
    task_timeout_seconds: float | None = None
    reap_enabled: bool = True

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults for local runs."""

        timeout_raw = os.getenv("TESTFLEET_TASK_TIMEOUT_SECONDS", "").strip()
        return cls(
            capabilities=_parse_capabilities(
                os.getenv("TESTFLEET_CAPABILITIES", DEFAULT_CAPABILITIES),
            ),
            retries=_env_int("TESTFLEET_RETRIES", default=0),
            spec_glob=os.getenv("TESTFLEET_SPEC_GLOB", DEFAULT_SPEC_GLOB).strip()
            or DEFAULT_SPEC_GLOB,
            task_timeout_seconds=_parse_timeout(timeout_raw) if timeout_raw else None,
            reap_enabled=_env_bool("TESTFLEET_REAP_ENABLED", default=True),
        )

    def validate(self) -> None:
        """Raise configuration error if settings cannot drive a run."""

        if not self.capabilities:
            raise ConfigError("At least one capability is required. Set TESTFLEET_CAPABILITIES.")
        for name, capability in self.capabilities.items():
            if capability.concurrency < 1:
                raise ConfigError(
                    f"Capability concurrency must be >= 1: {name!r} -> {capability.concurrency}",
                )
        if self.retries < 0:
            raise ConfigError("TESTFLEET_RETRIES must be >= 0.")
        if self.task_timeout_seconds is not None and self.task_timeout_seconds <= 0:
            raise ConfigError("TESTFLEET_TASK_TIMEOUT_SECONDS must be > 0.")


def _parse_capabilities(raw: str) -> dict[str, CapabilitySettings]:
    capabilities: dict[str, CapabilitySettings] = {}
    for part in raw.split(","):
        token = part.strip()
        if not token:
            continue
        name, _, concurrency_raw = token.partition("|")
        name = name.strip()
        if not name:
            raise ConfigError(f"Invalid TESTFLEET_CAPABILITIES entry: {token!r}.")
        concurrency_raw = concurrency_raw.strip()
        try:
            concurrency = int(concurrency_raw) if concurrency_raw else 1
        except ValueError as error:
            raise ConfigError(
                f"Invalid TESTFLEET_CAPABILITIES concurrency for {name!r}: {concurrency_raw!r}",
            ) from error
        if name in capabilities:
            raise ConfigError(f"Duplicate capability in TESTFLEET_CAPABILITIES: {name!r}")
        capabilities[name] = CapabilitySettings(name=name, concurrency=concurrency)
    return capabilities


def _parse_timeout(raw: str) -> float:
    try:
        return float(raw)
    except ValueError as error:
        raise ConfigError(f"Invalid TESTFLEET_TASK_TIMEOUT_SECONDS value: {raw!r}") from error


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as error:
        raise ConfigError(f"Invalid integer value for {name}: {value!r}") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ConfigError(f"Invalid boolean value for {name}: {value!r}")
