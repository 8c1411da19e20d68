"""
Tests for configuration helpers
"""

from everbloom import config


def test_validate_config_without_key(monkeypatch):
    monkeypatch.setattr(config, "OPENROUTER_API_KEY", "")
    valid, msg = config.validate_config()
    assert valid is False
    assert "OPENROUTER_API_KEY" in msg


def test_validate_config_with_key(monkeypatch):
    monkeypatch.setattr(config, "OPENROUTER_API_KEY", "sk-test")
    assert config.validate_config() == (True, "Configuration valid")


def test_config_summary_hides_key(monkeypatch):
    monkeypatch.setattr(config, "OPENROUTER_API_KEY", "sk-secret")
    summary = config.get_config_summary()
    assert summary["ai"]["key_configured"] is True
    assert "sk-secret" not in str(summary)
