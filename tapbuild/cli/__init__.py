"""tapbuild 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

from __future__ import annotations

import functools
import os
import sys
from typing import Any, Callable

import click

from tapbuild import __version__
from tapbuild.core.config import init_config
from tapbuild.core.exceptions import TapBuildError
from tapbuild.pipeline import Orchestrator
from tapbuild.services.container import ServiceContainer
from tapbuild.utils.logger import setup_logging


def _orchestrator() -> Orchestrator:
    """基于当前全局配置构造编排器"""
    return Orchestrator(ServiceContainer())


def _raw_options(
    with_: tuple[str, ...], without: tuple[str, ...], option: tuple[str, ...],
) -> list[str]:
    """--with / --without / -o 合并为原始选项列表"""
    raw = [f"with-{n}" for n in with_]
    raw += [f"without-{n}" for n in without]
    raw += list(option)
    return raw


def option_flags(func: Callable[..., Any]) -> Callable[..., Any]:
    """install / flags 共用的构建选项"""
    func = click.option("-o", "--option", multiple=True, help="原始选项（接受已弃用别名）")(func)
    func = click.option("--without", "without", multiple=True, help="禁用选项 NAME（可多次指定）")(func)
    func = click.option("--with", "with_", multiple=True, help="启用选项 NAME（可多次指定）")(func)
    func = click.option("--bottle", is_flag=True, help="可分发构建（保守指令集基线）")(func)
    func = click.option("--HEAD", "head", is_flag=True, help="构建开发分支")(func)
    return func


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """捕获 TapBuildError：输出信息与外部工具原始 stderr，以其返回码退出"""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except TapBuildError as e:
            click.echo(f"Error: {e}", err=True)
            stderr = getattr(e, "stderr", "")
            if stderr:
                click.echo(stderr.rstrip("\n"), err=True)
            sys.exit(e.returncode or 1)

    return wrapper


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """tapbuild - 从源码构建 Julia 与 LLVM 3.9 工具链"""
    setup_logging(
        level=os.getenv("TAPBUILD_LOG_LEVEL", "INFO"),
        json_output=os.getenv("TAPBUILD_LOG_JSON", "") == "1",
    )
    init_config()


# 注册各领域子命令
from tapbuild.cli.cmd_install import register as _reg_install  # noqa: E402
from tapbuild.cli.cmd_formula import register as _reg_formula  # noqa: E402

_reg_install(main)
_reg_formula(main)
