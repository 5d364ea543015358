from __future__ import annotations

from pathlib import Path

import pytest

from embedded_redis.config import DEFAULT_CONTROL_PORT, Config
from embedded_redis.variants import RedisSentinel, RedisServer

ENV_VARS = (
    "REDIS_EXECUTABLE",
    "REDIS_PORT",
    "REDIS_LOGFILE",
    "REDIS_SENTINEL_CONFIG",
    "CONTROL_PORT",
    "STOP_TIMEOUT",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # setenv then delenv so monkeypatch restores whatever load_dotenv adds.
    for name in ENV_VARS:
        monkeypatch.setenv(name, "placeholder")
        monkeypatch.delenv(name)


def test_defaults(tmp_path: Path) -> None:
    config = Config.from_env(tmp_path / "missing.env")

    assert config.redis_executable is None
    assert config.redis_port == 6379
    assert config.redis_logfile is None
    assert config.sentinel_config is None
    assert config.control_port == DEFAULT_CONTROL_PORT
    assert config.stop_timeout is None
    assert config.log_level == "INFO"


def test_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("REDIS_EXECUTABLE", "/opt/redis/bin/redis-server")
    monkeypatch.setenv("REDIS_PORT", "6390")
    monkeypatch.setenv("REDIS_LOGFILE", "/tmp/redis.log")
    monkeypatch.setenv("CONTROL_PORT", "9000")
    monkeypatch.setenv("STOP_TIMEOUT", "2.5")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = Config.from_env(tmp_path / "missing.env")

    assert config.redis_executable == Path("/opt/redis/bin/redis-server")
    assert config.redis_port == 6390
    assert config.redis_logfile == Path("/tmp/redis.log")
    assert config.control_port == 9000
    assert config.stop_timeout == 2.5
    assert config.log_level == "DEBUG"


def test_from_dotenv_file(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("REDIS_PORT=6500\nSTOP_TIMEOUT=1\n")

    config = Config.from_env(env_file)

    assert config.redis_port == 6500
    assert config.stop_timeout == 1.0


def test_sentinel_defaults_to_sentinel_port(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("REDIS_SENTINEL_CONFIG", "/etc/redis/sentinel.conf")

    config = Config.from_env(tmp_path / "missing.env")

    assert config.redis_port == 26379


@pytest.mark.parametrize(
    ("name", "value"),
    [("REDIS_PORT", "six"), ("CONTROL_PORT", "80.5"), ("STOP_TIMEOUT", "soon")],
)
def test_invalid_numbers(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, name: str, value: str
) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=name):
        Config.from_env(tmp_path / "missing.env")


def test_build_server() -> None:
    config = Config(redis_executable=Path("/opt/redis/bin/redis-server"), redis_port=6400)

    instance = config.build_instance()

    assert isinstance(instance, RedisServer)
    assert instance.ports() == [6400]
    assert instance.command[0] == "/opt/redis/bin/redis-server"


def test_build_sentinel() -> None:
    config = Config(
        redis_executable=Path("/opt/redis/bin/redis-server"),
        redis_port=26400,
        sentinel_config=Path("/etc/redis/sentinel.conf"),
    )

    instance = config.build_instance()

    assert isinstance(instance, RedisSentinel)
    assert instance.ports() == [26400]
    assert "--sentinel" in instance.command
