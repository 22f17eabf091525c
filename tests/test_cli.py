"""
Tests for the locksmith command line.
"""

import json
import os

import pytest

from locksmith.cli import main


@pytest.fixture
def store_path(tmp_path, monkeypatch):
    monkeypatch.delenv("LOCKSMITH_WEBHOOK_URL", raising=False)
    monkeypatch.delenv("LOCKSMITH_STORE_PATH", raising=False)
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    monkeypatch.delenv("LOCKSMITH_ALGORITHM", raising=False)
    return str(tmp_path / "secrets.json")


def _status(store_path, capsys):
    capsys.readouterr()
    assert main(["--store", store_path, "status", "--json"]) == 0
    return json.loads(capsys.readouterr().out)


class TestCLI:
    def test_init_creates_store(self, store_path, capsys):
        assert main(["--store", store_path, "init"]) == 0
        assert "Active secret:" in capsys.readouterr().out
        status = _status(store_path, capsys)
        assert len(status["secrets"]) == 1
        assert status["secrets"][0]["active"] is True
        assert "value" not in status["secrets"][0]

    def test_rotate_keeps_previous(self, store_path, capsys):
        main(["--store", store_path, "init"])
        assert main(["--store", store_path, "rotate"]) == 0
        status = _status(store_path, capsys)
        assert [s["active"] for s in status["secrets"]] == [True, False]

    def test_sign_and_verify(self, store_path, capsys):
        main(["--store", store_path, "init"])
        capsys.readouterr()
        assert main(["--store", store_path, "sign", '{"sub": "user-1"}', "--json"]) == 0
        token = capsys.readouterr().out.strip()

        main(["--store", store_path, "rotate"])
        capsys.readouterr()
        assert main(["--store", store_path, "verify", token, "--json"]) == 0
        result = json.loads(capsys.readouterr().out)
        assert result == {"valid": True, "claims": {"sub": "user-1"}}

    def test_verify_rejects_garbage(self, store_path, capsys):
        main(["--store", store_path, "init"])
        capsys.readouterr()
        assert main(["--store", store_path, "verify", "not-a-token", "--json"]) == 1
        result = json.loads(capsys.readouterr().out)
        assert result["valid"] is False
        assert result["error"] == "MalformedTokenError"

    def test_sign_invalid_json(self, store_path, capsys):
        assert main(["--store", store_path, "sign", "{oops", "--json"]) == 1
        assert "Invalid JSON" in capsys.readouterr().err

    def test_export_prints_hex(self, store_path, capsys):
        main(["--store", store_path, "init"])
        capsys.readouterr()
        assert main(["--store", store_path, "export"]) == 0
        value = capsys.readouterr().out.strip()
        assert len(bytes.fromhex(value)) == 64

    def test_bad_config_reports_error(self, store_path, capsys, monkeypatch):
        monkeypatch.setenv("LOCKSMITH_SECRET_BYTES", "8")
        assert main(["--store", store_path, "init"]) == 1
        assert "at least 32 bytes" in capsys.readouterr().err

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()

    def test_bad_algorithm_leaves_store_untouched(self, store_path, capsys, monkeypatch):
        monkeypatch.setenv("LOCKSMITH_ALGORITHM", "RS256")
        assert main(["--store", store_path, "init"]) == 1
        assert "Unsupported signing algorithm" in capsys.readouterr().err
        assert not os.path.exists(store_path)
