"""集中配置管理

安装前缀、下载缓存、构建目录等路径统一从这里读取。
支持从 YAML 文件加载 + 环境变量覆盖 + 编程式覆盖。
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from tapbuild.core.exceptions import ConfigError
from tapbuild.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "configs/tapbuild.yml"


@dataclass
class Config:
    """全局配置"""

    # 目录
    homebrew_prefix: str = "/usr/local"
    cellar: str = ""              # 为空则取 <homebrew_prefix>/Cellar
    cache_dir: str = ""           # 为空则取 ~/.cache/tapbuild
    build_root: str = ""          # 为空则取 <tmp>/tapbuild
    formula_dir: str = ""         # 额外配方目录（覆盖内置同名配方）

    # 构建
    make_jobs: int = 0            # >0 时注入 MAKEFLAGS=-jN
    keep_tmp: bool = False        # 构建成功后保留构建目录

    # 自定义扩展
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_FILE) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f for f in cls.__dataclass_fields__ if f != "extra"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        try:
            cfg = cls(**matched)
        except TypeError as e:
            raise ConfigError(f"配置文件无效: {path}: {e}") from e
        if not isinstance(cfg.make_jobs, int) or cfg.make_jobs < 0:
            raise ConfigError(f"make_jobs 必须为非负整数: {cfg.make_jobs!r}")
        cfg.extra = extra
        return cfg

    def apply_env(self, environ: dict[str, str] | None = None) -> Config:
        """用环境变量覆盖配置（TAPBUILD_PREFIX）"""
        env = os.environ if environ is None else environ
        prefix = env.get("TAPBUILD_PREFIX", "")
        if prefix:
            self.homebrew_prefix = prefix
        return self

    # ---- 派生路径 ----

    @property
    def prefix_path(self) -> Path:
        return Path(self.homebrew_prefix)

    @property
    def cellar_path(self) -> Path:
        return Path(self.cellar) if self.cellar else self.prefix_path / "Cellar"

    @property
    def cache_path(self) -> Path:
        if self.cache_dir:
            return Path(self.cache_dir)
        return Path.home() / ".cache" / "tapbuild"

    @property
    def build_path(self) -> Path:
        if self.build_root:
            return Path(self.build_root)
        return Path(tempfile.gettempdir()) / "tapbuild"

    def opt_prefix(self, name: str) -> Path:
        """依赖包的稳定入口: <homebrew_prefix>/opt/<name>"""
        return self.prefix_path / "opt" / name


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "") -> Config:
    """从文件初始化全局配置

    未指定 path 时依次取 TAPBUILD_CONFIG 环境变量、默认路径。
    """
    global _current  # noqa: PLW0603
    path = path or os.environ.get("TAPBUILD_CONFIG", DEFAULT_CONFIG_FILE)
    _current = Config.from_file(path).apply_env()
    logger.info("配置已加载: %s", path)
    return _current
