"""Tests for the click CLI."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner
from pydantic import ValidationError

from totpguard.cli import main
from totpguard.config import Settings
from totpguard.otp import STEP_SECONDS, compute_code
from totpguard.totp import Totp

STEP = 56_000_000


@pytest.fixture
def runner(monkeypatch) -> CliRunner:
    monkeypatch.setattr("totpguard.config.settings", Settings(_env_file=None))
    monkeypatch.setattr("totpguard.otp.clock", lambda: STEP * STEP_SECONDS + 1.0)
    return CliRunner()


@pytest.fixture
def state_file(tmp_path, totp):
    path = tmp_path / "alice.json"
    path.write_text(totp.to_json())
    return path


def test_enroll(runner, tmp_path):
    path = tmp_path / "bob.json"
    result = runner.invoke(main, ["enroll", str(path), "--name", "bob"])
    assert result.exit_code == 0, result.output
    totp = Totp.from_json(path.read_text())
    assert totp.secret in result.output
    assert len(totp.scratch_codes) == 8
    for code in totp.scratch_codes:
        assert code in result.output


def test_enroll_refuses_overwrite(runner, state_file):
    before = state_file.read_text()
    result = runner.invoke(main, ["enroll", str(state_file), "--name", "alice"])
    assert result.exit_code != 0
    assert state_file.read_text() == before


def test_enroll_with_policy(runner, tmp_path):
    policy = tmp_path / "policy.yaml"
    policy.write_text("scratch_count: 2\nwindow: 4\nreusable: true\n")
    path = tmp_path / "carol.json"
    result = runner.invoke(main, ["enroll", str(path), "--name", "carol", "--policy", str(policy)])
    assert result.exit_code == 0, result.output
    data = json.loads(path.read_text())
    assert len(data["scratch_codes"]) == 2
    assert data["window"] == 4
    assert data["reusable"] is True


def test_verify_time_code_and_replay(runner, state_file, totp):
    code = compute_code(totp.secret, STEP)
    result = runner.invoke(main, ["verify", str(state_file), code])
    assert result.exit_code == 0, result.output
    assert json.loads(state_file.read_text())["last_step"] == STEP

    result = runner.invoke(main, ["verify", str(state_file), code])
    assert result.exit_code == 1
    assert "already used" in result.output


def test_verify_scratch_code(runner, state_file):
    result = runner.invoke(main, ["verify", str(state_file), "12345678"])
    assert result.exit_code == 0, result.output
    assert json.loads(state_file.read_text())["scratch_codes"] == ["87654321"]


def test_verify_clock_error(runner, state_file, monkeypatch):
    monkeypatch.setattr("totpguard.otp.clock", lambda: -60.0)
    result = runner.invoke(main, ["verify", str(state_file), "123456"])
    assert result.exit_code == 2


def test_verify_missing_file(runner, tmp_path):
    result = runner.invoke(main, ["verify", str(tmp_path / "nope.json"), "123456"])
    assert result.exit_code != 0
    assert "not found" in result.output


def test_configure(runner, state_file):
    result = runner.invoke(main, ["configure", str(state_file), "--window", "5", "--reusable", "--scratch", "3"])
    assert result.exit_code == 0, result.output
    data = json.loads(state_file.read_text())
    assert data["window"] == 5
    assert data["reusable"] is True
    assert len(data["scratch_codes"]) == 3


def test_show(runner, state_file):
    result = runner.invoke(main, ["show", str(state_file)])
    assert result.exit_code == 0, result.output
    assert "scratch codes left" in result.output


def test_code(runner, state_file, totp):
    result = runner.invoke(main, ["code", str(state_file)])
    assert result.exit_code == 0, result.output
    assert compute_code(totp.secret, STEP) in result.output


def test_status(runner):
    result = runner.invoke(main, ["status"])
    assert result.exit_code == 0, result.output
    assert "Window: 1" in result.output


def test_corrupt_state_file(runner, tmp_path):
    path = tmp_path / "broken.json"
    path.write_text('{"secret": "not-base32!", "window": 1}')
    for args in (["verify", str(path), "123456"], ["show", str(path)], ["code", str(path)]):
        result = runner.invoke(main, args)
        assert result.exit_code == 1
        assert "Corrupt state file" in result.output
        assert not isinstance(result.exception, ValidationError)


def test_sealed_without_master_key(runner, state_file, monkeypatch):
    monkeypatch.setattr("totpguard.crypto.settings", Settings(_env_file=None, master_key=""))
    result = runner.invoke(main, ["show", str(state_file), "--sealed"])
    assert result.exit_code == 1
    assert "TOTPGUARD_MASTER_KEY not set" in result.output

    result = runner.invoke(main, ["enroll", str(state_file.with_name("new.json")), "--name", "eve", "--sealed"])
    assert result.exit_code == 1
    assert "TOTPGUARD_MASTER_KEY not set" in result.output


def test_relative_state_file_uses_state_dir(runner, tmp_path, monkeypatch):
    monkeypatch.setattr("totpguard.config.settings", Settings(_env_file=None, state_dir=tmp_path / "state"))
    result = runner.invoke(main, ["enroll", "users/dave.json", "--name", "dave"])
    assert result.exit_code == 0, result.output
    path = tmp_path / "state" / "users" / "dave.json"
    assert Totp.from_json(path.read_text()).secret in result.output

    result = runner.invoke(main, ["show", "users/dave.json"])
    assert result.exit_code == 0, result.output


def test_configure_rejects_huge_window(runner, state_file):
    result = runner.invoke(main, ["configure", str(state_file), "--window", "70000"])
    assert result.exit_code == 2
    assert json.loads(state_file.read_text())["window"] == 1
