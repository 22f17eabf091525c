"""
Unit tests for environment configuration.
"""

from datetime import timedelta

import pytest

from locksmith import ConfigurationError, parse_duration, policy_from_env
from locksmith.config import secret_bytes_from_env


class TestParseDuration:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("48h", timedelta(hours=48)),
            ("30m", timedelta(minutes=30)),
            ("15s", timedelta(seconds=15)),
            ("2d", timedelta(days=2)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("3600", timedelta(hours=1)),
            ("0", timedelta(0)),
            ("-1h", timedelta(hours=-1)),
        ],
    )
    def test_valid(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "soon", "10x", "h", "1h 30m", "inf"])
    def test_invalid(self, text):
        with pytest.raises(ConfigurationError):
            parse_duration(text)


class TestPolicyFromEnv:
    def test_defaults(self):
        policy = policy_from_env({})
        assert policy.rotation_interval == timedelta(hours=24)
        assert policy.grace_period == timedelta(hours=48)

    def test_overrides(self):
        policy = policy_from_env(
            {"LOCKSMITH_ROTATION_INTERVAL": "1h", "LOCKSMITH_GRACE_PERIOD": "0"}
        )
        assert policy.rotation_interval == timedelta(hours=1)
        assert policy.evicts is False

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("LOCKSMITH_GRACE_PERIOD", "90m")
        assert policy_from_env().grace_period == timedelta(minutes=90)

    def test_secret_bytes(self):
        assert secret_bytes_from_env({"LOCKSMITH_SECRET_BYTES": "32"}) == 32
        with pytest.raises(ConfigurationError):
            secret_bytes_from_env({"LOCKSMITH_SECRET_BYTES": "lots"})
