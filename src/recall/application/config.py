from pathlib import Path
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from recall.domain.constants import (
    DEFAULT_INSIGHT_LIMIT,
    DEFAULT_UNDO_WINDOW_SECONDS,
    MASTERY_MIN_INTERVAL,
    MASTERY_MIN_REPETITIONS,
    MAX_HISTORY_DAYS,
)

DATA_FILE_NAME = "recall.json"


def config_file_path() -> Path:
    return Path.home() / ".config/recall/config.toml"


class EngineConfig(BaseSettings):
    """
    Configuration model for the recall engine.
    Supports loading from:
    1. Manual overrides (CLI / constructor)
    2. Environment variables (RECALL_*)
    3. Config file (~/.config/recall/config.toml)
    """

    model_config = SettingsConfigDict(
        env_prefix="RECALL_",
        extra="ignore",
    )

    # Storage
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/recall")
    backend: Literal["json", "memory"] = "json"

    # Calendar; None means the system local zone
    timezone: str | None = None

    # Engine behaviour
    undo_window_seconds: float = Field(default=DEFAULT_UNDO_WINDOW_SECONDS, ge=0)
    history_days: int = Field(default=MAX_HISTORY_DAYS, ge=1)
    mastery_min_interval: int = Field(default=MASTERY_MIN_INTERVAL, ge=0)
    mastery_min_repetitions: int = Field(default=MASTERY_MIN_REPETITIONS, ge=0)
    insight_limit: int = Field(default=DEFAULT_INSIGHT_LIMIT, ge=1)

    # Persistence
    flush_interval_seconds: float = Field(default=2.0, gt=0)

    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        toml_file = config_file_path()
        if toml_file.exists():
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (
            init_settings,
            env_settings,
        )

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_paths(cls, v: Any) -> Path:
        return Path(v).expanduser()

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: str | None) -> str | None:
        if v is None or v == "":
            return None
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone: {v}") from e
        return v

    @property
    def data_file(self) -> Path:
        return self.data_dir / DATA_FILE_NAME


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> EngineConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in EngineConfig
    2. ~/.config/recall/config.toml (if exists)
    3. Environment variables (RECALL_*)
    4. cli_overrides (passed from Typer), None values ignored
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return EngineConfig(**overrides)
