import pytest
from pydantic import ValidationError as PydanticValidationError

from sydney_core.config.settings import Settings
from sydney_core.providers.registry import DEFAULT_PROFILE


def test_defaults():
    cfg = Settings()
    assert cfg.session_ttl_seconds == 300
    assert cfg.session_sweep_seconds == 10
    assert cfg.proxy_url is None
    assert cfg.protocol_profile == DEFAULT_PROFILE.name


def test_log_level_is_normalized():
    assert Settings(log_level="info").log_level == "INFO"


def test_proxy_requires_address():
    with pytest.raises(PydanticValidationError):
        Settings(use_proxy=True)
    cfg = Settings(use_proxy=True, http_proxy="http://127.0.0.1:7890")
    assert cfg.proxy_url == "http://127.0.0.1:7890"


def test_yaml_file_is_loaded(monkeypatch, tmp_path):
    path = tmp_path / "sydney.yaml"
    path.write_text("bing_cookie_u: from-yaml\nrepeated_answer: wait\n", encoding="utf-8")
    monkeypatch.setenv("SYDNEY_CONFIG_FILE", str(path))
    cfg = Settings()
    assert cfg.bing_cookie_u == "from-yaml"
    assert cfg.repeated_answer == "wait"


def test_env_overrides_yaml(monkeypatch, tmp_path):
    path = tmp_path / "sydney.yaml"
    path.write_text("bing_cookie_u: from-yaml\n", encoding="utf-8")
    monkeypatch.setenv("SYDNEY_CONFIG_FILE", str(path))
    monkeypatch.setenv("SYDNEY_BING_COOKIE_U", "from-env")
    assert Settings().bing_cookie_u == "from-env"
