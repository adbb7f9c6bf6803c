# ABOUTME: Tests for core.config environment parsing helpers.
# ABOUTME: Bad or missing values fall back to defaults instead of failing import.

from core.config import _parse_bool_env, _parse_int_env


def test_parse_int_env_reads_value(monkeypatch):
    monkeypatch.setenv("MAX_SAVE_RETRIES", "5")
    assert _parse_int_env("MAX_SAVE_RETRIES", 3) == 5


def test_parse_int_env_falls_back_on_garbage(monkeypatch):
    monkeypatch.setenv("MAX_SAVE_RETRIES", "lots")
    assert _parse_int_env("MAX_SAVE_RETRIES", 3) == 3


def test_parse_bool_env(monkeypatch):
    monkeypatch.delenv("PLANNER_ENABLED", raising=False)
    assert _parse_bool_env("PLANNER_ENABLED", False) is False
    for raw in ("1", "true", "YES", " on "):
        monkeypatch.setenv("PLANNER_ENABLED", raw)
        assert _parse_bool_env("PLANNER_ENABLED", False) is True
    monkeypatch.setenv("PLANNER_ENABLED", "no")
    assert _parse_bool_env("PLANNER_ENABLED", True) is False
