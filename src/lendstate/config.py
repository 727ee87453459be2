import tomllib
from pathlib import Path
from typing import Annotated

import tomlkit
from pydantic import BaseModel, Field, HttpUrl, PlainSerializer, WebsocketUrl, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from lendstate.logging import logger
from lendstate.types.aliases import ChainId
from lendstate.types.modes import PricingMode

CONFIG_DIR = Path.home() / ".config" / "lendstate"
CONFIG_FILE = CONFIG_DIR / "config.toml"
DB_PATH = CONFIG_DIR / "lendstate.db"


class DatabaseSettings(BaseModel):
    # Serialize the path as a string representation of the absolute path
    path: Annotated[
        Path,
        PlainSerializer(lambda path: str(path.absolute()), return_type=str),
    ] = DB_PATH


class Settings(BaseSettings):
    """
    Settings are resolved from (highest priority first) constructor arguments, `LENDSTATE_`
    environment variables, and the TOML config file. Nested values use a double underscore, e.g.
    `LENDSTATE_DATABASE__PATH=/tmp/lendstate.db`.
    """

    model_config = SettingsConfigDict(
        env_prefix="LENDSTATE_",
        env_nested_delimiter="__",
        toml_file=CONFIG_FILE,
    )

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    rpc: dict[
        ChainId,
        HttpUrl | WebsocketUrl | Path,
    ] = Field(default_factory=dict)
    pricing_mode: PricingMode = PricingMode.PRICE_AWARE

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )

    @field_validator("rpc", mode="after")
    def validate_paths(
        cls,  # noqa: N805
        rpc_dict: dict[ChainId, HttpUrl | WebsocketUrl | Path],
    ) -> dict[ChainId, HttpUrl | WebsocketUrl | Path]:
        """
        Validate the endpoints.

        This will convert all file paths to an absolute reference, leaving HTTP and WS URLs as-is.
        """

        return {
            chain_id: endpoint.expanduser().absolute() if isinstance(endpoint, Path) else endpoint
            for chain_id, endpoint in rpc_dict.items()
        }


def load_config_from_file(config_path: Path) -> Settings:
    return Settings.model_validate(
        tomllib.loads(
            config_path.read_text(),
        ),
    )


def config_to_toml(config: Settings) -> str:
    values = config.model_dump(mode="json")
    # TOML table keys must be strings
    values["rpc"] = {str(chain_id): str(endpoint) for chain_id, endpoint in config.rpc.items()}
    return tomlkit.dumps(values)


def save_config_to_file(config: Settings, config_path: Path = CONFIG_FILE) -> None:
    if not config_path.parent.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created a configuration directory at {config_path.parent}.")

    config_path.write_text(config_to_toml(config))


settings = Settings()
