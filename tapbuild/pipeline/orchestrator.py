"""安装编排器 - 协调 6 步流水线

职责：
- 严格按 fetch → resolve → assemble → build → post_install → verify 顺序执行
- 保证构建目录清理在 finally 中执行
- 提供 dry run（configure）与对已安装前缀的 test / post_install 入口
"""

from __future__ import annotations

import logging
import shutil

from tapbuild.core.models import (
    BuildContext,
    BuildOptions,
    DependencyClosure,
    Formula,
    InstallLayout,
)
from tapbuild.pipeline.models import InstallPlan, InstallReport
from tapbuild.pipeline.steps import PipelineSteps
from tapbuild.recipes import get_recipe
from tapbuild.services.caveats import render_caveats
from tapbuild.services.container import ServiceContainer

logger = logging.getLogger(__name__)


class Orchestrator:
    """6 步安装编排器（try/finally 保证清理构建目录）"""

    def __init__(self, container: ServiceContainer | None = None) -> None:
        self.c = container or ServiceContainer()
        self.steps = PipelineSteps(self.c)

    def context_for(self, plan: InstallPlan, formula: Formula) -> BuildContext:
        """由计划和配方构造初始构建上下文（依赖闭包在 resolve 阶段填充）"""
        cfg = self.c.config
        options = BuildOptions.parse(formula, plan.options)
        prefix = cfg.cellar_path / formula.name / formula.pkg_version(plan.head)
        return BuildContext(
            formula=formula,
            options=options,
            host=self.c.host,
            layout=InstallLayout(formula.name, prefix, cfg.prefix_path),
            deps=DependencyClosure(),
            buildpath=cfg.build_path / f"{formula.name}-{formula.version(plan.head)}",
            head=plan.head,
            bottle=plan.bottle,
            verbose=plan.verbose,
        )

    def _start(self, plan: InstallPlan) -> InstallReport:
        formula = self.c.registry.require(plan.formula)
        return InstallReport(plan=plan, context=self.context_for(plan, formula))

    def run(self, plan: InstallPlan) -> InstallReport:
        """完整安装流程"""
        report = self._start(plan)
        recipe = get_recipe(plan.formula)
        logger.info(
            "开始安装 %s %s%s", plan.formula, report.context.version,
            " (bottle)" if plan.bottle else "",
        )
        try:
            self.steps.fetch(plan, report)
            self.steps.resolve(plan, report)
            self.steps.assemble(plan, report, recipe)
            self.steps.build(plan, report, recipe)
            self.steps.post_install(plan, report, recipe)
            self.steps.verify(plan, report, recipe, strict=False)
        finally:
            self.cleanup(plan, report)

        report.caveats = render_caveats(recipe, report.context, self.c.receipts)
        return report

    def configure(self, plan: InstallPlan) -> InstallReport:
        """dry run：只解析依赖并装配标志，不拉取、不构建"""
        report = self._start(plan)
        recipe = get_recipe(plan.formula)
        self.steps.resolve(plan, report, check=False)
        self.steps.assemble(plan, report, recipe)
        return report

    def test(self, plan: InstallPlan) -> InstallReport:
        """对已安装前缀执行冒烟测试"""
        report = self._start(plan)
        recipe = get_recipe(plan.formula)
        self.steps.resolve(plan, report, check=False)
        self.steps.verify(plan, report, recipe)
        return report

    def post_install(self, plan: InstallPlan) -> InstallReport:
        """对已安装前缀重新执行安装后修补"""
        report = self._start(plan)
        recipe = get_recipe(plan.formula)
        self.steps.resolve(plan, report, check=False)
        self.steps.post_install(plan, report, recipe)
        return report

    def caveats(self, plan: InstallPlan) -> str:
        report = self._start(plan)
        return render_caveats(get_recipe(plan.formula), report.context, self.c.receipts)

    def cleanup(self, plan: InstallPlan, report: InstallReport) -> None:
        """删除构建目录（--keep-tmp 或配置 keep_tmp 时保留）"""
        buildpath = report.context.buildpath
        if plan.keep_tmp or self.c.config.keep_tmp:
            logger.info("保留构建目录: %s", buildpath)
            return
        if buildpath.exists():
            shutil.rmtree(buildpath)
            logger.info("已清理构建目录: %s", buildpath)
