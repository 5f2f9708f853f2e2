"""公共测试夹具

外部命令统一通过注入的记录型 CommandExecutor 替换，不 patch subprocess。
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

import tapbuild.core.config as cfgmod
from tapbuild.core.config import Config
from tapbuild.core.models import BuildContext, BuildOptions, HostFacts, InstallLayout
from tapbuild.core.registry import FormulaRegistry
from tapbuild.core.resolver import DependencyResolver
from tapbuild.utils.shell import CommandResult


class RecordingExecutor:
    """记录全部命令；按命令前缀返回预设结果，默认成功"""

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self._rules: list[tuple[str, CommandResult]] = []
        self._hooks: list[tuple[str, Callable[[list[str], str], None]]] = []

    def respond(self, prefix: str, *, returncode: int = 0,
                stdout: str = "", stderr: str = "") -> None:
        self._rules.insert(0, (prefix, CommandResult(returncode, stdout, stderr)))

    def on(self, prefix: str, hook: Callable[[list[str], str], None]) -> None:
        """匹配前缀时调用 hook(cmd, cwd)，用于模拟命令产生的文件"""
        self._hooks.append((prefix, hook))

    def execute(self, cmd, *, cwd: str = ".", env=None) -> CommandResult:
        args = cmd.split() if isinstance(cmd, str) else list(cmd)
        line = " ".join(args)
        self.calls.append({"cmd": args, "cwd": cwd, "env": env})
        for prefix, hook in self._hooks:
            if line.startswith(prefix):
                hook(args, cwd)
        for prefix, result in self._rules:
            if line.startswith(prefix):
                return result
        return CommandResult(0, "", "")

    def commands(self, program: str = "") -> list[list[str]]:
        return [c["cmd"] for c in self.calls if not program or c["cmd"][0] == program]

    def lines(self) -> list[str]:
        return [" ".join(c["cmd"]) for c in self.calls]


@pytest.fixture()
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture()
def config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Config:
    """独立的安装前缀、缓存与构建目录"""
    cfg = Config(
        homebrew_prefix=str(tmp_path / "brew"),
        cache_dir=str(tmp_path / "cache"),
        build_root=str(tmp_path / "build"),
    )
    monkeypatch.setattr(cfgmod, "_current", cfg)
    return cfg


@pytest.fixture()
def registry(config: Config) -> FormulaRegistry:
    return FormulaRegistry()


@pytest.fixture()
def make_host() -> Callable[..., HostFacts]:
    def _make(platform: str = "darwin", os_version: str = "10.12.6",
              compiler: str = "clang", **kwargs) -> HostFacts:
        env = kwargs.pop("env", {"PATH": "/usr/bin:/bin", "HOME": "/Users/dev", "USER": "dev"})
        return HostFacts(
            platform=platform, os_version=os_version,
            compiler=compiler, env=env, **kwargs,
        )
    return _make


@pytest.fixture()
def make_ctx(config: Config, registry: FormulaRegistry, make_host) -> Callable[..., BuildContext]:
    """按配方名 + 原始选项构造构建上下文（依赖闭包已解析）"""

    def _make(name: str, options: tuple[str, ...] = (), *, host: HostFacts | None = None,
              head: bool = False, bottle: bool = False, verbose: bool = False,
              extra_env: dict[str, str] | None = None) -> BuildContext:
        formula = registry.require(name)
        host = host or make_host()
        opts = BuildOptions.parse(formula, options)
        prefix = config.cellar_path / name / formula.pkg_version(head)
        return BuildContext(
            formula=formula,
            options=opts,
            host=host,
            layout=InstallLayout(name, prefix, config.prefix_path),
            deps=DependencyResolver(config).resolve(formula, opts, host),
            buildpath=config.build_path / f"{name}-{formula.version(head)}",
            head=head, bottle=bottle, verbose=verbose,
            extra_env=extra_env or {},
        )

    return _make
