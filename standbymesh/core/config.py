"""
Configuration Management for the StandbyMesh Coordinator

Provides validated configuration with sensible defaults.
Supports environment variable overrides.

Design:
- Immutable after validation
- Fail-fast on invalid configuration
- Type-safe with dataclasses
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from standbymesh.core.types import Result, Ok, Err
from standbymesh.core import constants as C


@dataclass(frozen=True)
class HeartbeatConfig:
    """
    Heartbeat protocol timing.

    The three intervals are independent: the monitor scans every
    ``check_interval_seconds``, clients are expected to send every
    ``send_interval_seconds``, and a session is declared dead after
    ``timeout_seconds`` of silence.
    """

    check_interval_seconds: float = C.HEARTBEAT_CHECK_INTERVAL_S
    send_interval_seconds: float = C.HEARTBEAT_SEND_INTERVAL_S
    timeout_seconds: float = C.HEARTBEAT_TIMEOUT_S
    simulated_failure_margin_seconds: float = C.SIMULATED_FAILURE_MARGIN_S


@dataclass(frozen=True)
class CryptoConfig:
    """Shared symmetric key material for peer-to-peer payloads."""

    key: bytes = C.DEFAULT_CRYPTO_KEY
    iv: bytes = C.DEFAULT_CRYPTO_IV

    @property
    def uses_default_key(self) -> bool:
        """True when the built-in legacy key material is in use."""
        return self.key == C.DEFAULT_CRYPTO_KEY and self.iv == C.DEFAULT_CRYPTO_IV


@dataclass(frozen=True)
class AuditConfig:
    """Audit sink (best-effort persistence) configuration."""

    backend: str = "memory"  # "memory" | "sqlite" | "postgres"
    sqlite_path: Path = field(default_factory=lambda: Path(C.AUDIT_SQLITE_PATH))
    postgres_dsn: Optional[str] = None
    queue_max_size: int = C.AUDIT_QUEUE_MAX_SIZE
    breaker_failure_threshold: int = C.AUDIT_BREAKER_FAILURE_THRESHOLD
    breaker_reset_seconds: float = C.AUDIT_BREAKER_RESET_S
    drain_timeout_seconds: float = C.AUDIT_DRAIN_TIMEOUT_S


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration."""

    log_level: str = "INFO"
    log_json: bool = True


@dataclass(frozen=True)
class StandbyMeshConfig:
    """Root configuration for the coordinator."""

    heartbeat: HeartbeatConfig = field(default_factory=HeartbeatConfig)
    crypto: CryptoConfig = field(default_factory=CryptoConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> Result[StandbyMeshConfig, str]:
        """
        Load configuration from environment variables.

        Environment variables are prefixed with STANDBYMESH_.
        Example: STANDBYMESH_HEARTBEAT_TIMEOUT, STANDBYMESH_AUDIT_BACKEND

        Key material is read as UTF-8 text (STANDBYMESH_CRYPTO_KEY) or
        hex (STANDBYMESH_CRYPTO_KEY_HEX); the hex form wins when both are set.
        """
        try:
            heartbeat = HeartbeatConfig(
                check_interval_seconds=_env_float(
                    "STANDBYMESH_HEARTBEAT_CHECK_INTERVAL", C.HEARTBEAT_CHECK_INTERVAL_S,
                ),
                send_interval_seconds=_env_float(
                    "STANDBYMESH_HEARTBEAT_SEND_INTERVAL", C.HEARTBEAT_SEND_INTERVAL_S,
                ),
                timeout_seconds=_env_float(
                    "STANDBYMESH_HEARTBEAT_TIMEOUT", C.HEARTBEAT_TIMEOUT_S,
                ),
                simulated_failure_margin_seconds=_env_float(
                    "STANDBYMESH_SIMULATED_FAILURE_MARGIN", C.SIMULATED_FAILURE_MARGIN_S,
                ),
            )

            crypto = CryptoConfig(
                key=_read_key_material("STANDBYMESH_CRYPTO_KEY", C.DEFAULT_CRYPTO_KEY),
                iv=_read_key_material("STANDBYMESH_CRYPTO_IV", C.DEFAULT_CRYPTO_IV),
            )

            audit = AuditConfig(
                backend=os.getenv("STANDBYMESH_AUDIT_BACKEND", "memory").lower(),
                sqlite_path=Path(os.getenv(
                    "STANDBYMESH_AUDIT_SQLITE_PATH", C.AUDIT_SQLITE_PATH,
                )),
                postgres_dsn=os.getenv("STANDBYMESH_AUDIT_POSTGRES_DSN"),
                queue_max_size=int(os.getenv(
                    "STANDBYMESH_AUDIT_QUEUE_MAX_SIZE", str(C.AUDIT_QUEUE_MAX_SIZE),
                )),
                breaker_failure_threshold=int(os.getenv(
                    "STANDBYMESH_AUDIT_BREAKER_THRESHOLD",
                    str(C.AUDIT_BREAKER_FAILURE_THRESHOLD),
                )),
                breaker_reset_seconds=_env_float(
                    "STANDBYMESH_AUDIT_BREAKER_RESET", C.AUDIT_BREAKER_RESET_S,
                ),
                drain_timeout_seconds=_env_float(
                    "STANDBYMESH_AUDIT_DRAIN_TIMEOUT", C.AUDIT_DRAIN_TIMEOUT_S,
                ),
            )

            observability = ObservabilityConfig(
                log_level=os.getenv("STANDBYMESH_LOG_LEVEL", "INFO").upper(),
                log_json=os.getenv("STANDBYMESH_LOG_JSON", "true").lower()
                in ("1", "true", "yes"),
            )

            return Ok(cls(
                heartbeat=heartbeat,
                crypto=crypto,
                audit=audit,
                observability=observability,
            ))
        except (ValueError, TypeError) as e:
            return Err(f"Configuration error: {e}")

    def validate(self) -> Result[None, str]:
        """Validate configuration invariants."""
        hb = self.heartbeat
        if hb.check_interval_seconds <= 0:
            return Err("Heartbeat check interval must be > 0")
        if hb.timeout_seconds <= 0:
            return Err("Heartbeat timeout must be > 0")
        if hb.send_interval_seconds <= 0:
            return Err("Heartbeat send interval must be > 0")
        if hb.send_interval_seconds >= hb.timeout_seconds:
            return Err("Heartbeat send interval must be < timeout")
        if hb.simulated_failure_margin_seconds <= 0:
            return Err("Simulated failure margin must be > 0")
        if len(self.crypto.key) != C.AES_KEY_BYTES:
            return Err(f"Crypto key must be {C.AES_KEY_BYTES} bytes")
        if len(self.crypto.iv) != C.AES_IV_BYTES:
            return Err(f"Crypto IV must be {C.AES_IV_BYTES} bytes")
        if self.audit.backend not in C.AUDIT_BACKENDS:
            return Err(f"Unknown audit backend '{self.audit.backend}'")
        if self.audit.backend == "postgres" and not self.audit.postgres_dsn:
            return Err("Postgres audit backend requires STANDBYMESH_AUDIT_POSTGRES_DSN")
        if self.audit.queue_max_size < 1:
            return Err("Audit queue size must be >= 1")
        if self.audit.breaker_failure_threshold < 1:
            return Err("Audit breaker failure threshold must be >= 1")
        if self.audit.breaker_reset_seconds <= 0:
            return Err("Audit breaker reset must be > 0")
        if self.audit.drain_timeout_seconds <= 0:
            return Err("Audit drain timeout must be > 0")
        return Ok(None)


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _read_key_material(name: str, default: bytes) -> bytes:
    hex_value = os.getenv(f"{name}_HEX")
    if hex_value:
        return bytes.fromhex(hex_value)
    text_value = os.getenv(name)
    if text_value:
        return text_value.encode("utf-8")
    return default
