"""配方构建策略 - Strategy Pattern

每个配方对应一个 Recipe，只负责"算"：环境变量、构建标志、
需要解包的资源、需要软链接的依赖库、构建命令、rpath、冒烟测试。
"执行"统一由流水线各阶段完成，Recipe 不直接调用子进程。
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from tapbuild.core.flags import FlagSet, flag_key
from tapbuild.core.models import (
    BuildCommand,
    BuildConfiguration,
    BuildContext,
    Resource,
    SmokeTest,
)

if TYPE_CHECKING:
    from tapbuild.core.receipt import Receipt

logger = logging.getLogger(__name__)


class BaseRecipe(ABC):
    """配方构建策略公共接口"""

    formula_name: str = ""

    # ---- 标志装配 ----

    def environment(self, ctx: BuildContext) -> dict[str, str]:
        """需要覆盖的构建环境变量（基于 ctx.env 快照计算，不修改进程环境）"""
        return {}

    @abstractmethod
    def assemble_flags(self, ctx: BuildContext) -> FlagSet:
        """按选项与主机信息装配构建标志"""

    def bottle_flags(self, ctx: BuildContext) -> list[str]:
        """可分发构建（bottle）的保守指令集基线"""
        return []

    def make_goals(self, ctx: BuildContext) -> tuple[str, ...]:
        return ()

    def configure(self, ctx: BuildContext) -> BuildConfiguration:
        """装配完整构建配置；bottle 基线移除同键旧值后追加到末尾"""
        flags = self.assemble_flags(ctx)
        if ctx.bottle:
            for flag in self.bottle_flags(ctx):
                flags.discard(flag_key(flag))
                flags.add(flag)
        return BuildConfiguration(
            flags=tuple(flags),
            env=self.environment(ctx),
            goals=self.make_goals(ctx),
        )

    # ---- 构建 ----

    def resources(self, ctx: BuildContext) -> list[Resource]:
        """构建前需要解包到源码树中的资源"""
        return []

    def library_links(self, ctx: BuildContext) -> list[Path]:
        """构建前需要软链接到 buildpath/usr/lib 的依赖库"""
        return []

    @abstractmethod
    def build_commands(
        self, ctx: BuildContext, cfg: BuildConfiguration,
    ) -> list[BuildCommand]:
        """按顺序执行的外部构建命令"""

    def install_extras(self, ctx: BuildContext) -> None:
        """构建命令之后、由工具自身完成的额外安装动作"""

    # ---- 安装后 ----

    def rpaths(self, ctx: BuildContext) -> list[str]:
        return []

    def patch_targets(self, ctx: BuildContext) -> list[Path]:
        """需要追加 rpath 的可执行文件"""
        return []

    def cache_artifacts(self, ctx: BuildContext) -> list[Path]:
        """需要放宽为 0644 的缓存产物（供用户后续重新生成）"""
        return []

    def caveats(self, ctx: BuildContext, receipts: dict[str, Receipt | None]) -> str:
        return ""

    def caveat_dependencies(self) -> list[str]:
        """渲染注意事项时需要读取安装回执的依赖"""
        return []

    @abstractmethod
    def smoke_test(self, ctx: BuildContext) -> SmokeTest:
        """安装后冒烟测试"""


def lib_name(stem: str, ctx: BuildContext) -> str:
    """libopenblas -> libopenblas.dylib / libopenblas.so"""
    return f"{stem}{ctx.host.shared_lib_suffix}"
