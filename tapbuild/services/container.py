"""服务容器 - 统一依赖注入

流水线各阶段用到的服务都通过容器获取，同一容器内实例共享（执行器、主机信息等）。
测试时注入记录型 CommandExecutor / 下载函数 / HostFacts 即可替换全部外部交互。

用法:
    container = ServiceContainer()
    fetcher = container.fetcher          # 懒加载

    container = ServiceContainer(config=cfg, executor=fake, host=host)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tapbuild.core.config import Config
    from tapbuild.core.models import HostFacts
    from tapbuild.core.receipt import ReceiptStore
    from tapbuild.core.registry import FormulaRegistry
    from tapbuild.core.requirements import RequirementChecker
    from tapbuild.core.resolver import DependencyResolver
    from tapbuild.services.build import BuildInvoker
    from tapbuild.services.fetch import SourceFetcher
    from tapbuild.services.fetch.sources import Downloader
    from tapbuild.services.patcher import PostInstallPatcher
    from tapbuild.services.verifier import Verifier
    from tapbuild.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器"""

    def __init__(
        self,
        config: Config | None = None,
        executor: CommandExecutor | None = None,
        downloader: Downloader | None = None,
        host: HostFacts | None = None,
    ) -> None:
        self._instances: dict[str, object] = {}
        if config is None:
            from tapbuild.core.config import get_config
            config = get_config()
        if executor is None:
            from tapbuild.utils.shell import get_executor
            executor = get_executor()
        self._config = config
        self._executor = executor
        self._downloader = downloader
        self._host = host

    @property
    def config(self) -> Config:
        return self._config

    @property
    def executor(self) -> CommandExecutor:
        return self._executor

    @property
    def host(self) -> HostFacts:
        if self._host is None:
            from tapbuild.core.host import detect_host
            self._host = detect_host(executor=self._executor)
        return self._host

    # ---- 核心 ----

    @property
    def registry(self) -> FormulaRegistry:
        if "registry" not in self._instances:
            from tapbuild.core.registry import FormulaRegistry
            self._instances["registry"] = FormulaRegistry(self._config.formula_dir)
        return self._instances["registry"]  # type: ignore[return-value]

    @property
    def resolver(self) -> DependencyResolver:
        if "resolver" not in self._instances:
            from tapbuild.core.resolver import DependencyResolver
            self._instances["resolver"] = DependencyResolver(self._config)
        return self._instances["resolver"]  # type: ignore[return-value]

    @property
    def requirements(self) -> RequirementChecker:
        if "requirements" not in self._instances:
            from tapbuild.core.requirements import RequirementChecker
            self._instances["requirements"] = RequirementChecker(self._executor)
        return self._instances["requirements"]  # type: ignore[return-value]

    @property
    def receipts(self) -> ReceiptStore:
        if "receipts" not in self._instances:
            from tapbuild.core.receipt import ReceiptStore
            self._instances["receipts"] = ReceiptStore(self._config.prefix_path)
        return self._instances["receipts"]  # type: ignore[return-value]

    # ---- 服务 ----

    @property
    def fetcher(self) -> SourceFetcher:
        if "fetcher" not in self._instances:
            from tapbuild.services.fetch import SourceFetcher
            self._instances["fetcher"] = SourceFetcher(
                cache_root=self._config.cache_path,
                executor=self._executor,
                downloader=self._downloader,
            )
        return self._instances["fetcher"]  # type: ignore[return-value]

    @property
    def builder(self) -> BuildInvoker:
        if "builder" not in self._instances:
            from tapbuild.services.build import BuildInvoker
            self._instances["builder"] = BuildInvoker(
                executor=self._executor, make_jobs=self._config.make_jobs,
            )
        return self._instances["builder"]  # type: ignore[return-value]

    @property
    def patcher(self) -> PostInstallPatcher:
        if "patcher" not in self._instances:
            from tapbuild.services.patcher import PostInstallPatcher
            self._instances["patcher"] = PostInstallPatcher(
                self.host.platform, executor=self._executor,
            )
        return self._instances["patcher"]  # type: ignore[return-value]

    @property
    def verifier(self) -> Verifier:
        if "verifier" not in self._instances:
            from tapbuild.services.verifier import Verifier
            self._instances["verifier"] = Verifier(self._executor)
        return self._instances["verifier"]  # type: ignore[return-value]
