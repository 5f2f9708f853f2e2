"""依赖解析器

职责:
- 按选项 / 平台 / 系统版本过滤配方声明的依赖（平铺枚举，不做版本约束求解）
- 区分构建期依赖与运行时依赖，构建期依赖不进入运行时闭包
- 检查依赖是否已安装到 <homebrew_prefix>/opt/<name>
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from tapbuild.core.exceptions import DependencyError
from tapbuild.core.models import (
    BuildOptions,
    Dependency,
    DependencyClosure,
    Formula,
    HostFacts,
    ResolvedDependency,
)

if TYPE_CHECKING:
    from tapbuild.core.config import Config

logger = logging.getLogger(__name__)


class DependencyResolver:
    """依赖解析器 - 只读本地文件系统，不安装任何东西"""

    def __init__(self, config: Config | None = None) -> None:
        if config is None:
            from tapbuild.core.config import get_config
            config = get_config()
        self.config = config

    def wanted(self, dep: Dependency, options: BuildOptions, host: HostFacts) -> bool:
        """判断依赖在当前选项与主机下是否需要"""
        if dep.optional and not options.with_(dep.name):
            return False
        if dep.recommended and options.without(dep.name):
            return False
        if dep.when_option and not options.with_(dep.when_option):
            return False
        if dep.platforms and host.platform not in dep.platforms:
            return False
        return host.os_at_least(dep.min_os)

    def resolve(
        self, formula: Formula, options: BuildOptions, host: HostFacts,
    ) -> DependencyClosure:
        """解析依赖闭包，保持声明顺序，同名依赖只保留第一次出现"""
        build: list[ResolvedDependency] = []
        runtime: list[ResolvedDependency] = []
        seen: set[str] = set()
        for dep in formula.dependencies:
            if dep.name in seen or not self.wanted(dep, options, host):
                continue
            seen.add(dep.name)
            resolved = ResolvedDependency(
                name=dep.name,
                build_only=dep.build_only,
                opt_prefix=self.config.opt_prefix(dep.name),
            )
            (build if dep.build_only else runtime).append(resolved)

        closure = DependencyClosure(build=tuple(build), runtime=tuple(runtime))
        logger.info(
            "依赖解析 %s: 构建期=%s 运行时=%s",
            formula.name, [d.name for d in build],
            closure.names(include_build=False),
        )
        return closure

    @staticmethod
    def missing(closure: DependencyClosure) -> list[str]:
        """返回 opt 入口不存在的依赖名（声明顺序）"""
        return [d.name for d in closure.all if not Path(d.opt_prefix).exists()]

    def ensure_present(self, closure: DependencyClosure) -> None:
        """依赖缺失时抛 DependencyError"""
        missing = self.missing(closure)
        if missing:
            raise DependencyError(
                f"缺少依赖: {', '.join(missing)}（请先安装后重试）",
                missing=missing,
            )
