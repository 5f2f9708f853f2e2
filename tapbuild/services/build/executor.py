"""构建执行器

职责:
- 组装构建环境（主机快照 + 配方覆盖 + MAKEFLAGS）
- 依赖库软链接暂存
- 按顺序执行外部构建命令，任一失败立即抛 BuildError（原始 stderr 原样保留）
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from tapbuild.core.models import (
    BuildCommand,
    BuildConfiguration,
    BuildContext,
    BuildResult,
)
from tapbuild.services.build.staging import link_libraries
from tapbuild.utils.shell import CommandExecutor, format_cmd, get_executor, run_cmd

if TYPE_CHECKING:
    from tapbuild.recipes.base import BaseRecipe

logger = logging.getLogger(__name__)


class BuildInvoker:
    """构建执行器"""

    def __init__(self, executor: CommandExecutor | None = None, make_jobs: int = 0) -> None:
        self.executor = executor or get_executor()
        self.make_jobs = make_jobs

    def build_env(self, ctx: BuildContext, cfg: BuildConfiguration) -> dict[str, str]:
        """构建命令的完整环境，不修改进程环境"""
        env = {**ctx.env, **cfg.env}
        if self.make_jobs > 0:
            env["MAKEFLAGS"] = f"-j{self.make_jobs}"
        return env

    def run(self, commands: list[BuildCommand], env: dict[str, str]) -> list[str]:
        """顺序执行构建命令，返回已执行命令的可读形式"""
        executed: list[str] = []
        for cmd in commands:
            cmd.cwd.mkdir(parents=True, exist_ok=True)
            run_cmd(
                list(cmd.argv), cwd=str(cmd.cwd), env=env,
                label=cmd.label, executor=self.executor,
            )
            executed.append(format_cmd(list(cmd.argv)))
        return executed

    def invoke(
        self, ctx: BuildContext, recipe: BaseRecipe, cfg: BuildConfiguration,
    ) -> BuildResult:
        """暂存依赖库 → 执行构建命令 → 额外安装动作"""
        start = time.monotonic()
        link_libraries(ctx.buildpath, recipe.library_links(ctx))
        ctx.layout.prefix.mkdir(parents=True, exist_ok=True)

        commands = recipe.build_commands(ctx, cfg)
        executed = self.run(commands, self.build_env(ctx, cfg))
        recipe.install_extras(ctx)

        duration = time.monotonic() - start
        logger.info(
            "构建完成: %s %s (%d 条命令, %.1fs)",
            ctx.formula.name, ctx.version, len(executed), duration,
        )
        return BuildResult(prefix=ctx.layout.prefix, duration=duration, commands=executed)
