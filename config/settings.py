import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict, TomlConfigSettingsSource

from core.errors import ConfigError
from core.models import ContractType, PropertyType


load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_FILE = os.getenv("PROPWATCH_CONFIG", "propwatch.toml")


class GeocodingConfig(BaseModel):
    enabled: bool = False
    user_agent: str = "propwatch"
    nominatim_url: str = "https://nominatim.openstreetmap.org/search"


class TelegramConfig(BaseModel):
    enabled: bool = False
    api_key: str = ""
    chat_id: str = ""


class MailConfig(BaseModel):
    enabled: bool = False
    smtp_server: str = ""
    port: int = 587
    username: str = ""
    password: str = ""


class CsvConfig(BaseModel):
    enabled: bool = False
    filename: str = "propwatch.csv"


class DatabaseConfig(BaseModel):
    enabled: bool = False
    dsn: str = ""
    collection_name: str = "properties"


class CrawlTarget(BaseModel):
    """One `[[watcher]]` block: what to crawl, where, and for which offer kind."""

    city: str
    address: str
    crawler: str
    contract_type: ContractType
    property_type: PropertyType

    @property
    def name(self) -> str:
        return f"{self.crawler}@{self.city}"


class Settings(BaseSettings):
    test: bool = False
    run_periodically: bool = True
    interval: int = Field(default=300, gt=0)
    initial_run: bool = False
    thread_count: int = Field(default=2, ge=1)
    timeout: float = Field(default=30.0, gt=0)

    log_level: str = "INFO"
    log_dir: Path = BASE_DIR / "logs"

    history_path: Optional[Path] = BASE_DIR / "data" / "history.json"
    history_window: int = Field(default=500, ge=1)
    min_title_length: int = Field(default=0, ge=0)

    geocoding: GeocodingConfig = GeocodingConfig()
    telegram: TelegramConfig = TelegramConfig()
    mail: MailConfig = MailConfig()
    csv: CsvConfig = CsvConfig()
    database: DatabaseConfig = DatabaseConfig()

    watcher: List[CrawlTarget] = Field(default_factory=list)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PROPWATCH_",
        env_nested_delimiter="__",
        extra="ignore",
        toml_file=DEFAULT_CONFIG_FILE,
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        # env wins over the TOML file
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


def load_settings(config_path: Optional[str] = None, **overrides) -> Settings:
    """
    Reads settings from the environment, `.env` and the TOML config file.
    Raises ConfigError when the file or a value does not validate.
    """
    path = Path(config_path or DEFAULT_CONFIG_FILE)
    if config_path and not path.exists():
        raise ConfigError(f"Configuration file {path} not found")

    class FileSettings(Settings):
        model_config = SettingsConfigDict(toml_file=path)

    try:
        return FileSettings(**overrides)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e
    except ValueError as e:
        # malformed TOML surfaces as tomllib.TOMLDecodeError, a ValueError
        raise ConfigError(f"Could not read configuration {path}: {e}") from e
