"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import List, Literal

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator


class StoreConfig(BaseModel):
    """Where slots and swap requests are persisted."""
    backend: Literal["sqlalchemy", "memory"] = "sqlalchemy"
    url: str = "sqlite:///slotswap.db"


class UserEntry(BaseModel):
    """A known user of the system."""
    id: str
    name: str  # Used as alias
    email: str

    @field_validator("id", "name", "email")
    @classmethod
    def validate_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "UTC"
    log_level: str = "WARNING"
    store: StoreConfig = Field(default_factory=StoreConfig)
    users: List[UserEntry] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA identifier."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("users")
    @classmethod
    def validate_users(cls, value: List[UserEntry]) -> List[UserEntry]:
        """Ensure user ids, aliases and emails are unique."""
        seen_ids: set[str] = set()
        seen_names: set[str] = set()
        seen_emails: set[str] = set()
        for user in value:
            id_key = user.id.lower()
            name_key = user.name.lower()
            email_key = user.email.lower()
            if id_key in seen_ids:
                raise ValueError(f"Duplicate user id detected: {user.id}")
            if name_key in seen_names:
                raise ValueError(f"Duplicate user name detected: {user.name}")
            if email_key in seen_emails:
                raise ValueError(f"Duplicate user email detected: {user.email}")
            seen_ids.add(id_key)
            seen_names.add(name_key)
            seen_emails.add(email_key)
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    def find_user(self, identifier: str) -> UserEntry | None:
        """Find a user by id, name (alias) or email."""
        key = identifier.strip().lower()
        for user in self.users:
            if key in (user.id.lower(), user.name.lower(), user.email.lower()):
                return user
        return None

    def resolve_user(self, identifier: str) -> str:
        """
        Resolve a user identifier (id, name/alias or email) to a user id.

        Raises:
            ValueError: If identifier cannot be resolved
        """
        user = self.find_user(identifier)
        if user:
            return user.id

        raise ValueError(
            f"Unknown user identifier: '{identifier}'. "
            f"Use a configured id, name or email address."
        )


def get_default_config_path() -> Path:
    """
    Locate ``config.yaml``.

    The working directory wins; otherwise the file next to the ``slotswap/``
    package directory in a source checkout is used, even if it does not exist
    yet, so the loader can report a helpful path.
    """
    candidates = (Path.cwd() / "config.yaml", Path(__file__).resolve().parent.parent / "config.yaml")
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return candidates[-1]
