from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from cadence.domain.constants import (
    INITIAL_EASE,
    LAPSE_INTERVAL_DAYS,
    LAPSE_PENALTY,
    LEARNING_STEPS_DAYS,
    MIN_EASE,
    PASSING_GRADE,
)

from .scheduler import SchedulerParams


def _config_files() -> list[Path]:
    # Resolved lazily so a patched HOME is honoured.
    return [
        Path.home() / ".config/cadence/config.toml",
        Path.home() / ".cadence.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for cadence.
    Supports loading from:
    1. Environment variables (CADENCE_*)
    2. Config file (~/.config/cadence/config.toml or ~/.cadence.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        extra="ignore",
    )

    # Storage
    backend: Literal["sqlite", "memory"] = "sqlite"
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/cadence")
    db_path: Path | None = None

    # Scheduling
    initial_ease: float = INITIAL_EASE
    min_ease: float = MIN_EASE
    lapse_penalty: float = LAPSE_PENALTY
    lapse_interval: int = LAPSE_INTERVAL_DAYS
    learning_steps: list[int] = Field(default_factory=lambda: list(LEARNING_STEPS_DAYS))
    passing_grade: int = Field(default=PASSING_GRADE, ge=1, le=5)

    # Output
    verbose: int = 0

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

        toml_file = next((f for f in _config_files() if f.exists()), None)

        # First source wins: CLI overrides, then env, then the file.
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("data_dir", "db_path", mode="before")
    @classmethod
    def resolve_path(cls, v: Any) -> Path | None:
        if v is None:
            return None
        return Path(v).expanduser().resolve()

    @field_validator("learning_steps")
    @classmethod
    def check_learning_steps(cls, v: list[int]) -> list[int]:
        if any(step < 1 for step in v):
            raise ValueError("learning steps must be at least 1 day")
        return v

    @field_validator("min_ease")
    @classmethod
    def check_min_ease(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("min_ease must be positive")
        return v

    @field_validator("lapse_interval")
    @classmethod
    def check_lapse_interval(cls, v: int) -> int:
        if v < 1:
            raise ValueError("lapse_interval must be at least 1 day")
        return v

    @property
    def database(self) -> Path:
        return self.db_path or self.data_dir / "cards.db"

    def scheduler_params(self) -> SchedulerParams:
        return SchedulerParams(
            initial_ease=max(self.initial_ease, self.min_ease),
            min_ease=self.min_ease,
            lapse_penalty=self.lapse_penalty,
            lapse_interval=self.lapse_interval,
            learning_steps=tuple(self.learning_steps),
            passing_grade=self.passing_grade,
        )


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/cadence/config.toml (if exists)
    3. Environment variables (CADENCE_*)
    4. cli_overrides (passed from Typer)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
