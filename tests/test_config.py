import importlib

import pytest

import storefront.config as config


@pytest.fixture
def reload_config(monkeypatch):
    """Re-read storefront.config under a patched environment, then restore it."""

    def _reload(**env):
        for name in ("JWT_SECRET", "JWT_ALGORITHM", "ACCESS_TOKEN_EXPIRE_DAYS", "CORS_ORIGINS", "SEED_DATA", "PORT"):
            monkeypatch.delenv(name, raising=False)
        for name, value in env.items():
            monkeypatch.setenv(name, value)
        return importlib.reload(config)

    yield _reload
    monkeypatch.undo()
    importlib.reload(config)


def test_defaults(reload_config):
    settings = reload_config()

    assert settings.SECRET_KEY == "change-me"
    assert settings.ALGORITHM == "HS256"
    assert settings.ACCESS_TOKEN_EXPIRE_DAYS == 7
    assert settings.CORS_ORIGINS == ["*"]
    assert settings.SEED_DATA is True
    assert settings.PORT == 3000


def test_environment_overrides(reload_config):
    settings = reload_config(
        JWT_SECRET="from-env",
        CORS_ORIGINS="http://localhost:5173, https://shop.example.com,",
        SEED_DATA="no",
        PORT="8080",
    )

    assert settings.SECRET_KEY == "from-env"
    assert settings.CORS_ORIGINS == ["http://localhost:5173", "https://shop.example.com"]
    assert settings.SEED_DATA is False
    assert settings.PORT == 8080
