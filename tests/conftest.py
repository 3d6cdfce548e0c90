from __future__ import annotations

from pathlib import Path

import pytest
from fake_toolchain import FakeToolchain

from easl_cli import config as config_module
from easl_cli.config import Config


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config_module, "CONFIG_DIR", tmp_path / "user-config")


@pytest.fixture
def toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture
def config() -> Config:
    return Config()
