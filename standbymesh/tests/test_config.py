"""
Unit Tests: Configuration

Tests:
    - Defaults and validation rules
    - Environment overrides
"""

from pathlib import Path

import pytest

from standbymesh.core import constants as C
from standbymesh.core.config import (
    AuditConfig,
    CryptoConfig,
    HeartbeatConfig,
    StandbyMeshConfig,
)


class TestDefaults:
    """Tests for default configuration."""

    def test_defaults_validate(self):
        config = StandbyMeshConfig()
        assert config.validate().is_ok()

    def test_heartbeat_timings(self):
        hb = StandbyMeshConfig().heartbeat
        assert hb.check_interval_seconds == 5.0
        assert hb.send_interval_seconds == 10.0
        assert hb.timeout_seconds == 30.0

    def test_default_key_flagged(self):
        assert CryptoConfig().uses_default_key
        assert not CryptoConfig(key=b"k" * 32).uses_default_key


class TestValidate:
    """Tests for StandbyMeshConfig.validate."""

    def test_send_interval_must_be_below_timeout(self):
        config = StandbyMeshConfig(heartbeat=HeartbeatConfig(
            send_interval_seconds=30.0, timeout_seconds=30.0,
        ))
        assert config.validate().is_err()

    def test_check_interval_must_be_positive(self):
        config = StandbyMeshConfig(heartbeat=HeartbeatConfig(check_interval_seconds=0))
        assert config.validate().is_err()

    def test_simulated_failure_margin_must_be_positive(self):
        for margin in (0.0, -5.0):
            config = StandbyMeshConfig(heartbeat=HeartbeatConfig(
                simulated_failure_margin_seconds=margin,
            ))
            assert config.validate().is_err()

    def test_send_interval_must_be_positive(self):
        config = StandbyMeshConfig(heartbeat=HeartbeatConfig(send_interval_seconds=0))
        assert config.validate().is_err()

    def test_audit_breaker_and_drain_settings(self):
        for audit in (
            AuditConfig(breaker_failure_threshold=0),
            AuditConfig(breaker_reset_seconds=0),
            AuditConfig(drain_timeout_seconds=-1),
        ):
            assert StandbyMeshConfig(audit=audit).validate().is_err()

    def test_key_length(self):
        config = StandbyMeshConfig(crypto=CryptoConfig(key=b"k" * 16))
        result = config.validate()
        assert result.is_err()
        assert "32 bytes" in result.error

    def test_unknown_backend(self):
        config = StandbyMeshConfig(audit=AuditConfig(backend="mongo"))
        assert config.validate().is_err()

    def test_postgres_needs_dsn(self):
        config = StandbyMeshConfig(audit=AuditConfig(backend="postgres"))
        assert config.validate().is_err()

        config = StandbyMeshConfig(audit=AuditConfig(
            backend="postgres", postgres_dsn="postgresql://localhost/audit",
        ))
        assert config.validate().is_ok()


class TestFromEnv:
    """Tests for StandbyMeshConfig.from_env."""

    def test_no_overrides(self, monkeypatch):
        for name in ("STANDBYMESH_HEARTBEAT_TIMEOUT", "STANDBYMESH_AUDIT_BACKEND"):
            monkeypatch.delenv(name, raising=False)

        config = StandbyMeshConfig.from_env().unwrap()
        assert config.heartbeat.timeout_seconds == C.HEARTBEAT_TIMEOUT_S
        assert config.audit.backend == "memory"

    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("STANDBYMESH_HEARTBEAT_TIMEOUT", "45")
        monkeypatch.setenv("STANDBYMESH_AUDIT_BACKEND", "SQLite")
        monkeypatch.setenv("STANDBYMESH_AUDIT_SQLITE_PATH", str(tmp_path / "audit.db"))
        monkeypatch.setenv("STANDBYMESH_CRYPTO_KEY_HEX", "ab" * 32)
        monkeypatch.setenv("STANDBYMESH_LOG_JSON", "false")

        config = StandbyMeshConfig.from_env().unwrap()

        assert config.heartbeat.timeout_seconds == 45.0
        assert config.audit.backend == "sqlite"
        assert config.audit.sqlite_path == Path(tmp_path / "audit.db")
        assert config.crypto.key == bytes.fromhex("ab" * 32)
        assert config.observability.log_json is False
        assert config.validate().is_ok()

    def test_text_key(self, monkeypatch):
        monkeypatch.delenv("STANDBYMESH_CRYPTO_KEY_HEX", raising=False)
        monkeypatch.setenv("STANDBYMESH_CRYPTO_KEY", "k" * 32)

        config = StandbyMeshConfig.from_env().unwrap()
        assert config.crypto.key == b"k" * 32

    def test_malformed_number(self, monkeypatch):
        monkeypatch.setenv("STANDBYMESH_HEARTBEAT_TIMEOUT", "thirty")

        result = StandbyMeshConfig.from_env()
        assert result.is_err()
        assert "Configuration error" in result.error

    def test_failover_and_audit_tuning(self, monkeypatch):
        monkeypatch.setenv("STANDBYMESH_SIMULATED_FAILURE_MARGIN", "2.5")
        monkeypatch.setenv("STANDBYMESH_AUDIT_BREAKER_THRESHOLD", "3")
        monkeypatch.setenv("STANDBYMESH_AUDIT_BREAKER_RESET", "12")
        monkeypatch.setenv("STANDBYMESH_AUDIT_DRAIN_TIMEOUT", "0.5")

        config = StandbyMeshConfig.from_env().unwrap()

        assert config.heartbeat.simulated_failure_margin_seconds == 2.5
        assert config.audit.breaker_failure_threshold == 3
        assert config.audit.breaker_reset_seconds == 12.0
        assert config.audit.drain_timeout_seconds == 0.5
