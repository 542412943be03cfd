from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from lingua.domain.constants import PERSIST_TIMEOUT


class AppConfig(BaseSettings):
    """
    Configuration model for lingua.
    Supports loading from:
    1. Environment variables (LINGUA_*)
    2. Config file (~/.config/lingua/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="LINGUA_",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/lingua")
    deck_path: Path | None = None
    preferences_path: Path | None = None
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/lingua/logs")

    # Storage
    backend: Literal["yaml", "memory"] = "yaml"

    # Practice
    language: str = ""  # active language filter, empty = all languages
    persist_timeout: float = Field(default=PERSIST_TIMEOUT, gt=0)
    seed: int | None = None

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

        # Find the first existing file; re-evaluated so tests can patch HOME
        toml_file = None
        for f in (Path.home() / ".config/lingua/config.toml", Path.home() / ".lingua.toml"):
            if f.exists():
                toml_file = f
                break

        # Later sources lose: CLI overrides beat env, env beats the file.
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("data_dir", "deck_path", "preferences_path", "log_dir", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Path | None:
        if v is None or v == "":
            return None
        return Path(v).expanduser()

    @field_validator("language", mode="before")
    @classmethod
    def normalize_language(cls, v: Any) -> str:
        return str(v or "").strip().lower()


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/lingua/config.toml (if exists)
    3. Environment variables (LINGUA_*)
    4. cli_overrides (passed from Typer)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    config = AppConfig(**overrides)

    if config.deck_path is None:
        config.deck_path = config.data_dir / "deck.yaml"
    if config.preferences_path is None:
        config.preferences_path = config.data_dir / "preferences.json"

    return config
