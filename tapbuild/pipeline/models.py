"""流水线数据模型

- InstallPlan: 一次安装/测试的声明
- InstallReport: 各阶段结果
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tapbuild.core.models import (
    BuildConfiguration,
    BuildContext,
    BuildResult,
    SourceTree,
    VerifyResult,
)


@dataclass
class InstallPlan:
    """安装计划"""

    formula: str
    options: list[str] = field(default_factory=list)   # 原始选项，如 with-system-libm
    head: bool = False
    bottle: bool = False
    verbose: bool = False
    keep_tmp: bool = False
    ignore_dependencies: bool = False
    skip_test: bool = False


@dataclass
class InstallReport:
    """安装报告"""

    plan: InstallPlan
    context: BuildContext | None = None
    tree: SourceTree | None = None
    configuration: BuildConfiguration | None = None
    build: BuildResult | None = None
    verify: VerifyResult | None = None
    flags: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    caveats: str = ""
    steps: list[dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.verify is None or self.verify.ok

    def step(self, name: str) -> dict[str, Any] | None:
        for s in self.steps:
            if s["step"] == name:
                return s
        return None
