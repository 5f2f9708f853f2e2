"""配置加载单元测试"""

from __future__ import annotations

from pathlib import Path

import pytest

import tapbuild.core.config as cfgmod
from tapbuild.core.config import Config, get_config, init_config
from tapbuild.core.exceptions import ConfigError
from tapbuild.utils.yaml_io import save_yaml


class TestConfig:
    def test_defaults(self) -> None:
        cfg = Config()
        assert cfg.cellar_path == Path("/usr/local/Cellar")
        assert cfg.opt_prefix("gmp") == Path("/usr/local/opt/gmp")
        assert cfg.cache_path.name == "tapbuild"

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert Config.from_file(str(tmp_path / "none.yml")) == Config()

    def test_from_file_with_extra(self, tmp_path: Path) -> None:
        path = tmp_path / "tapbuild.yml"
        save_yaml(path, {"homebrew_prefix": "/opt/brew", "make_jobs": 8, "mirror": "x"})
        cfg = Config.from_file(str(path))
        assert cfg.prefix_path == Path("/opt/brew")
        assert cfg.make_jobs == 8
        assert cfg.extra == {"mirror": "x"}

    def test_explicit_cellar(self) -> None:
        assert Config(cellar="/data/Cellar").cellar_path == Path("/data/Cellar")

    @pytest.mark.parametrize("jobs", [-1, "four"])
    def test_invalid_make_jobs(self, tmp_path: Path, jobs) -> None:
        path = tmp_path / "tapbuild.yml"
        save_yaml(path, {"make_jobs": jobs})
        with pytest.raises(ConfigError, match="make_jobs"):
            Config.from_file(str(path))

    def test_env_prefix_override(self) -> None:
        cfg = Config().apply_env({"TAPBUILD_PREFIX": "/home/dev/brew"})
        assert cfg.homebrew_prefix == "/home/dev/brew"


class TestGlobalConfig:
    def test_init_from_env_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "custom.yml"
        save_yaml(path, {"keep_tmp": True})
        monkeypatch.setattr(cfgmod, "_current", None)
        monkeypatch.setenv("TAPBUILD_CONFIG", str(path))
        monkeypatch.delenv("TAPBUILD_PREFIX", raising=False)
        cfg = init_config()
        assert cfg.keep_tmp is True
        assert get_config() is cfg
