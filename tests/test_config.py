import pathlib

import pytest
from pydantic import HttpUrl

from lendstate.config import Settings, load_config_from_file, save_config_to_file
from lendstate.types import PricingMode


def test_default_settings():
    config = Settings()
    assert config.pricing_mode is PricingMode.PRICE_AWARE
    assert config.database.path.name == "lendstate.db"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: pathlib.Path):
    monkeypatch.setenv("LENDSTATE_PRICING_MODE", "balance-only")
    monkeypatch.setenv("LENDSTATE_DATABASE__PATH", str(tmp_path / "state.db"))

    config = Settings()
    assert config.pricing_mode is PricingMode.BALANCE_ONLY
    assert config.database.path == tmp_path / "state.db"


def test_rpc_paths_are_absolute():
    config = Settings(rpc={1: "geth.ipc"})
    endpoint = config.rpc[1]
    assert isinstance(endpoint, pathlib.Path)
    assert endpoint.is_absolute()


def test_save_and_load_config(tmp_path: pathlib.Path):
    config = Settings(
        rpc={1: "http://localhost:8545"},
        pricing_mode=PricingMode.BALANCE_ONLY,
        database={"path": tmp_path / "state.db"},
    )
    config_path = tmp_path / "nested" / "config.toml"

    save_config_to_file(config, config_path=config_path)
    loaded = load_config_from_file(config_path)

    assert loaded.rpc == {1: HttpUrl("http://localhost:8545")}
    assert loaded.pricing_mode is PricingMode.BALANCE_ONLY
    assert loaded.database.path == tmp_path / "state.db"
