"""源码拉取器

职责:
- 按 SourceSpec 类型分派到 GitSource / ArchiveSource
- 下载并按声明顺序应用补丁
- 将资源（附加源码）解包到构建目录的指定子目录

任何网络、VCS、校验或补丁失败都直接抛 FetchError，不做重试。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from tapbuild.core.exceptions import FetchError
from tapbuild.core.models import Formula, PatchSpec, Resource, SourceSpec, SourceTree
from tapbuild.services.fetch.sources import (
    ArchiveSource,
    Downloader,
    GitSource,
    download_file,
    verify_checksum,
)
from tapbuild.utils.shell import CommandExecutor, format_cmd, get_executor

if TYPE_CHECKING:
    from tapbuild.core.config import Config

logger = logging.getLogger(__name__)


class SourceFetcher:
    """源码拉取器"""

    def __init__(
        self,
        cache_root: Path | None = None,
        executor: CommandExecutor | None = None,
        downloader: Downloader | None = None,
        config: Config | None = None,
    ) -> None:
        if cache_root is None:
            if config is None:
                from tapbuild.core.config import get_config
                config = get_config()
            cache_root = config.cache_path
        self.cache_root = Path(cache_root)
        self.executor = executor or get_executor()
        self.downloader = downloader
        self.git = GitSource(self.cache_root, self.executor)
        self.archive = ArchiveSource(self.cache_root, downloader)

    def _source_for(self, spec: SourceSpec) -> GitSource | ArchiveSource:
        return self.git if spec.kind == "git" else self.archive

    def fetch(self, formula: Formula, dest: Path, *, head: bool = False) -> SourceTree:
        """拉取配方主源码到 dest"""
        spec = formula.source(head)
        logger.info(
            "拉取 %s %s (%s, shallow=%s)",
            formula.name, spec.resolved_version(), spec.kind, spec.shallow,
        )
        return self._source_for(spec).fetch(formula.name, spec, dest)

    def apply_patches(self, name: str, patches: tuple[PatchSpec, ...], workdir: Path) -> int:
        """按顺序应用补丁，返回已应用数量"""
        patch_dir = self.cache_root / f"{name}--patches"
        for i, patch in enumerate(patches, 1):
            filename = patch.url.rstrip("/").split("/")[-1]
            local = download_file(patch.url, patch_dir / filename, self.downloader)
            if patch.sha256:
                verify_checksum(local, patch.sha256)
            cmd = ["patch", "-g", "0", "-f", f"-p{patch.strip}", "-i", str(local)]
            r = self.executor.execute(cmd, cwd=str(workdir))
            if not r.success:
                raise FetchError(
                    f"补丁应用失败 ({i}/{len(patches)}): {filename}: {format_cmd(cmd)}",
                    returncode=r.returncode, stderr=r.stderr or r.stdout,
                )
            logger.debug("  已应用补丁: %s", filename)
        if patches:
            logger.info("已应用 %d 个补丁: %s", len(patches), name)
        return len(patches)

    def stage_resource(
        self, formula_name: str, resource: Resource, buildpath: Path, *, head: bool = False,
    ) -> Path:
        """将资源源码解包到 buildpath/<destination>"""
        spec = resource.source(head)
        dest = buildpath / resource.destination
        self._source_for(spec).fetch(f"{formula_name}--{resource.name}", spec, dest)
        logger.info("资源就绪: %s -> %s", resource.name, dest)
        return dest
