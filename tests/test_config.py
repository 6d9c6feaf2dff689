"""
Tests for configuration loading.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

import slotswap
from slotswap.config import AppConfig, StoreConfig, get_default_config_path


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_full_config(tmp_path):
    path = _write(tmp_path, """
timezone: Europe/Berlin
log_level: info
store:
  backend: memory
users:
  - {id: u-alice, name: alice, email: alice@example.com}
  - {id: u-bob, name: Bob, email: bob@example.com}
""")

    config = AppConfig.load_from_yaml(path)

    assert config.timezone == "Europe/Berlin"
    assert config.log_level == "INFO"
    assert config.store.backend == "memory"
    assert [u.id for u in config.users] == ["u-alice", "u-bob"]


def test_defaults_for_empty_file(tmp_path):
    config = AppConfig.load_from_yaml(_write(tmp_path, ""))

    assert config.timezone == "UTC"
    assert config.store == StoreConfig()
    assert config.store.url.startswith("sqlite:///")
    assert config.users == []


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="config.example.yaml"):
        AppConfig.load_from_yaml(tmp_path / "nope.yaml")


def test_invalid_yaml(tmp_path):
    with pytest.raises(ValueError, match="Invalid YAML"):
        AppConfig.load_from_yaml(_write(tmp_path, "users: [unclosed"))


def test_root_must_be_mapping(tmp_path):
    with pytest.raises(ValueError, match="mapping"):
        AppConfig.load_from_yaml(_write(tmp_path, "- just\n- a list\n"))


@pytest.mark.parametrize(
    "users, message",
    [
        ([("a", "alice", "a@x.io"), ("a", "bob", "b@x.io")], "Duplicate user id"),
        ([("a", "alice", "a@x.io"), ("b", "ALICE", "b@x.io")], "Duplicate user name"),
        ([("a", "alice", "a@x.io"), ("b", "bob", "A@X.io")], "Duplicate user email"),
    ],
)
def test_users_must_be_unique(users, message):
    with pytest.raises(PydanticValidationError, match=message):
        AppConfig(users=[{"id": i, "name": n, "email": e} for i, n, e in users])


def test_unknown_timezone_and_log_level():
    with pytest.raises(PydanticValidationError, match="Unknown timezone"):
        AppConfig(timezone="Mars/Olympus")
    with pytest.raises(PydanticValidationError, match="Unknown log level"):
        AppConfig(log_level="chatty")


def test_unknown_backend():
    with pytest.raises(PydanticValidationError):
        StoreConfig(backend="mongodb")


def test_resolve_user_by_id_name_or_email():
    config = AppConfig(users=[{"id": "u-alice", "name": "alice", "email": "alice@example.com"}])

    assert config.resolve_user("u-alice") == "u-alice"
    assert config.resolve_user("Alice") == "u-alice"
    assert config.resolve_user("ALICE@example.com") == "u-alice"
    with pytest.raises(ValueError, match="Unknown user identifier"):
        config.resolve_user("mallory")


def test_default_path_prefers_working_directory(tmp_path, monkeypatch):
    (tmp_path / "config.yaml").write_text("", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    assert get_default_config_path().resolve() == (tmp_path / "config.yaml").resolve()


def test_default_path_falls_back_to_checkout_root(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    expected = Path(slotswap.__file__).resolve().parent.parent / "config.yaml"
    assert get_default_config_path() == expected
