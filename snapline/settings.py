"""
Snapline configuration.

Values come from, in order of precedence: explicit arguments, ``SNAPLINE_*``
environment variables, ``settings.custom.toml`` and ``settings.toml``.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)


class DatabaseDriver(str, Enum):
    """Supported database drivers."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql+psycopg2"
    POSTGRESQL_ASYNC = "postgresql+asyncpg"


class Settings(BaseSettings):
    """Settings for the API server, database, device broker and launcher client."""

    model_config = SettingsConfigDict(
        toml_file=["settings.toml", "settings.custom.toml"], env_prefix="SNAPLINE_", extra="ignore"
    )

    # Server
    port: int = 8000
    host: str = "127.0.0.1"
    root_url: str = "/"
    debug: bool = False
    data_path: str = str(Path.home() / ".snapline")

    # Database
    database_driver: DatabaseDriver = DatabaseDriver.SQLITE
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "snapline"
    database_username: str = "postgres"
    database_password: str = "postgres"
    database_pool_size: int = 20

    # API tokens
    jwt_secret_key: str = "insecure-change-this-key-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24

    # Device commands over RabbitMQ
    device_commands_enabled: bool = True
    device_command_exchange: str = "snapline.devices"
    rabbitmq_login: str = "guest"
    rabbitmq_password: str = "guest"
    rabbitmq_host: str = "localhost"
    rabbitmq_port: int = 5672
    rabbitmq_vhost: str = "/"

    # Instance launcher
    launcher_timeout: float = 30.0

    # Logging
    log_level: str = "INFO"
    log_to_file: bool = False
    log_dir: str | None = None  # defaults to {data_path}/logs
    log_rotation: str = "20 MB"
    log_retention: str = "1 week"
    log_format: str | None = None

    @classmethod
    def settings_customize_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, env_settings, TomlConfigSettingsSource(settings_cls)

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL for the configured driver."""
        if self.database_driver == DatabaseDriver.SQLITE:
            return f"sqlite:///{self.database_name}.db"
        credentials = f"{self.database_username}:{self.database_password}"
        location = f"{self.database_host}:{self.database_port}/{self.database_name}"
        return f"{self.database_driver.value}://{credentials}@{location}"

    @property
    def amqp_url(self) -> str:
        """AMQP connection URL for the device command broker."""
        vhost = "" if self.rabbitmq_vhost == "/" else self.rabbitmq_vhost.lstrip("/")
        return (
            f"amqp://{self.rabbitmq_login}:{self.rabbitmq_password}"
            f"@{self.rabbitmq_host}:{self.rabbitmq_port}/{vhost}"
        )

    def get_log_dir(self) -> Path:
        if self.log_dir:
            return Path(self.log_dir)
        return Path(self.data_path) / "logs"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
