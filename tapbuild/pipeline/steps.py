"""流水线步骤实现 - 6 步

步骤顺序：
1. fetch - 拉取源码并打补丁
2. resolve - 解析依赖、检查编译器与环境要求
3. assemble - 装配构建标志
4. build - 解包资源、执行构建、写回执、更新 opt 链接
5. post_install - rpath 修补、放宽缓存产物权限
6. verify - 冒烟测试
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING

from tapbuild.core.exceptions import VerifyError
from tapbuild.core.models import VerifyResult
from tapbuild.core.receipt import Receipt
from tapbuild.core.requirements import check_compiler
from tapbuild.services.build import link_opt_prefix

if TYPE_CHECKING:
    from tapbuild.pipeline.models import InstallPlan, InstallReport
    from tapbuild.recipes.base import BaseRecipe
    from tapbuild.services.container import ServiceContainer

logger = logging.getLogger(__name__)


class PipelineSteps:
    """流水线步骤集合，每步结果写入 report"""

    def __init__(self, container: ServiceContainer) -> None:
        self.c = container

    def fetch(self, plan: InstallPlan, report: InstallReport) -> None:
        """步骤1: 拉取主源码并按顺序应用补丁"""
        ctx = report.context
        tree = self.c.fetcher.fetch(ctx.formula, ctx.buildpath, head=ctx.head)
        report.tree = tree
        applied = self.c.fetcher.apply_patches(
            ctx.formula.name, ctx.formula.patches, ctx.buildpath,
        )
        report.steps.append({
            "step": "fetch", "status": "done",
            "version": tree.version, "commit": tree.commit, "patches": applied,
        })
        logger.info(
            "[Step 1] 源码就绪: %s %s (%d 个补丁)", ctx.formula.name, tree.version, applied,
        )

    def resolve(
        self, plan: InstallPlan, report: InstallReport, *, check: bool = True,
    ) -> None:
        """步骤2: 解析依赖闭包；check 为真时要求依赖已安装并检查环境要求"""
        ctx = report.context
        check_compiler(ctx.formula, ctx.host)
        closure = self.c.resolver.resolve(ctx.formula, ctx.options, ctx.host)

        extra_env: dict[str, str] = {}
        status = "done"
        if check and not plan.ignore_dependencies:
            self.c.resolver.ensure_present(closure)
            extra_env = self.c.requirements.check_all(ctx.formula, ctx.options, ctx.host)
        elif plan.ignore_dependencies:
            status = "unchecked"
            report.warnings.append("已跳过依赖检查 (--ignore-dependencies)")

        report.context = dataclasses.replace(ctx, deps=closure, extra_env=extra_env)
        report.steps.append({
            "step": "resolve", "status": status,
            "build": closure.names(include_build=True),
            "runtime": closure.names(include_build=False),
        })
        logger.info("[Step 2] 依赖解析完成: %s", closure.names())

    def assemble(
        self, plan: InstallPlan, report: InstallReport, recipe: BaseRecipe,
    ) -> None:
        """步骤3: 装配构建配置（标志 + 环境覆盖 + make 目标）"""
        cfg = recipe.configure(report.context)
        report.configuration = cfg
        report.flags = list(cfg.flags)
        report.steps.append({
            "step": "assemble", "status": "done", "flags": len(cfg.flags),
        })
        logger.info("[Step 3] 构建标志装配完成: %d 项", len(cfg.flags))

    def build(
        self, plan: InstallPlan, report: InstallReport, recipe: BaseRecipe,
    ) -> None:
        """步骤4: 解包资源 → 构建安装 → 写安装回执 → 更新 opt 链接"""
        ctx = report.context
        staged = [
            self.c.fetcher.stage_resource(
                ctx.formula.name, res, ctx.buildpath, head=ctx.head,
            ).name
            for res in recipe.resources(ctx)
        ]
        result = self.c.builder.invoke(ctx, recipe, report.configuration)
        report.build = result

        self.c.receipts.write(ctx.layout.prefix, Receipt.from_context(ctx, report.tree))
        link_opt_prefix(ctx.layout.opt_prefix, ctx.layout.prefix)

        report.steps.append({
            "step": "build", "status": "done",
            "prefix": str(result.prefix), "resources": staged,
            "duration": round(result.duration, 1),
        })
        logger.info("[Step 4] 构建安装完成: %s", result.prefix)

    def post_install(
        self, plan: InstallPlan, report: InstallReport, recipe: BaseRecipe,
    ) -> None:
        """步骤5: 为可执行文件追加 rpath，放宽缓存产物权限"""
        ctx = report.context
        targets = recipe.patch_targets(ctx)
        rpaths = recipe.rpaths(ctx)
        added = 0
        if targets and rpaths:
            added = self.c.patcher.add_rpaths(targets, rpaths)
        relaxed = self.c.patcher.relax_cache_permissions(recipe.cache_artifacts(ctx))
        report.steps.append({
            "step": "post_install", "status": "done",
            "patched": [p.name for p in targets], "rpaths_added": added,
            "relaxed": [p.name for p in relaxed],
        })
        logger.info(
            "[Step 5] 安装后修补完成: %d 个文件, %d 个缓存产物",
            len(targets), len(relaxed),
        )

    def verify(
        self, plan: InstallPlan, report: InstallReport, recipe: BaseRecipe,
        *, strict: bool = True,
    ) -> None:
        """步骤6: 冒烟测试；测试资源缺失只记录告警

        strict=False 时冒烟测试失败同样只记为告警，已安装的前缀保留。
        """
        if plan.skip_test:
            report.steps.append({"step": "verify", "status": "skipped"})
            logger.info("[Step 6] 冒烟测试已跳过")
            return
        ctx = report.context
        try:
            result = self.c.verifier.verify(recipe.smoke_test(ctx), env=ctx.env)
        except VerifyError as e:
            if strict:
                raise
            logger.warning("[Step 6] 冒烟测试失败，保留安装结果: %s", e)
            result = VerifyResult(status="failed", message=str(e))
            report.warnings.append(
                f"{e}\n{e.stderr.rstrip()}" if e.stderr.strip() else str(e),
            )
        else:
            if result.status == "warning":
                report.warnings.append(result.message)
        report.verify = result
        report.steps.append({
            "step": "verify", "status": result.status, "message": result.message,
        })
        logger.info("[Step 6] 冒烟测试: %s", result.status)
