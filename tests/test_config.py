import pytest

import main
from config import Settings


def test_from_env(monkeypatch):
    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-env")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("HISTORY_LIMIT", "12")
    monkeypatch.setenv("REQUEST_TIMEOUT", "25")
    monkeypatch.setenv("SERIALIZE_PER_USER", "false")
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.setenv("NODE_ENV", "production")

    settings = Settings.from_env()

    assert settings.api_key == "sk-env"
    assert settings.port == 8080
    assert settings.history_limit == 12
    assert settings.request_timeout == 25.0
    assert settings.serialize_per_user is False
    assert settings.app_env == "production"
    assert settings.start_listener is False


def test_defaults():
    settings = Settings()
    assert settings.history_limit == 20
    assert settings.request_timeout == 20.0
    assert settings.start_listener is True
    assert settings.generation_params() == {
        "temperature": 0.7,
        "top_p": 0.9,
        "max_tokens": 1000,
        "frequency_penalty": 0.5,
        "presence_penalty": 0.3,
    }


def test_invalid_values_fail_fast(monkeypatch):
    with pytest.raises(ValueError):
        Settings(history_limit=0)
    monkeypatch.setenv("PORT", "not-a-port")
    with pytest.raises(ValueError):
        Settings.from_env()


def test_launcher_skips_listener_in_production(monkeypatch):
    runs = []
    monkeypatch.setattr(main, "get_settings", lambda: Settings(app_env="production"))
    monkeypatch.setattr(main.uvicorn, "run", lambda *args, **kwargs: runs.append((args, kwargs)))

    main.main()
    assert runs == []


def test_launcher_runs_uvicorn(monkeypatch):
    runs = []
    monkeypatch.setattr(main, "get_settings", lambda: Settings(api_key="sk", port=4321))
    monkeypatch.setattr(main.uvicorn, "run", lambda *args, **kwargs: runs.append((args, kwargs)))

    main.main()

    (args, kwargs), = runs
    assert args == ("api:app",)
    assert kwargs["port"] == 4321
    assert kwargs["host"] == "0.0.0.0"


def test_memory_backend_from_env(monkeypatch):
    monkeypatch.setenv("MEMORY_BACKEND", "Memory")
    assert Settings.from_env().memory_backend == "memory"

    monkeypatch.setenv("MEMORY_BACKEND", "redis")
    with pytest.raises(ValueError):
        Settings.from_env()
