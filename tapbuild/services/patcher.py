"""安装后修补

职责:
- 为可执行文件追加依赖库 rpath（darwin: install_name_tool，linux: patchelf），已存在的跳过
- 修补期间临时放宽文件权限，结束后（含异常）恢复原权限
- 放宽指定缓存产物权限，供用户后续重新生成
"""

from __future__ import annotations

import logging
import stat
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from tapbuild.core.exceptions import PatchError
from tapbuild.utils.shell import CommandExecutor, format_cmd, get_executor

logger = logging.getLogger(__name__)

PATCH_MODE = 0o755
CACHE_MODE = 0o644

# install_name_tool 对已存在的 rpath 报此错误，视为已完成
_DUPLICATE_RPATH = "would duplicate path"


@contextmanager
def relaxed_permissions(path: Path, mode: int = PATCH_MODE) -> Iterator[Path]:
    """临时将 path 权限设为 mode，退出时恢复原权限"""
    original = stat.S_IMODE(path.stat().st_mode)
    path.chmod(mode)
    try:
        yield path
    finally:
        path.chmod(original)


def rpath_command(platform: str, binary: Path, rpath: str) -> list[str]:
    if platform == "darwin":
        return ["install_name_tool", "-add_rpath", rpath, str(binary)]
    return ["patchelf", "--add-rpath", rpath, str(binary)]


class PostInstallPatcher:
    """安装后修补器"""

    def __init__(self, platform: str, executor: CommandExecutor | None = None) -> None:
        self.platform = platform
        self.executor = executor or get_executor()

    def add_rpaths(self, binaries: list[Path], rpaths: list[str]) -> int:
        """为每个可执行文件追加全部 rpath，返回实际追加次数"""
        added = 0
        for binary in binaries:
            with relaxed_permissions(binary):
                existing = self._current_rpaths(binary)
                for rpath in rpaths:
                    if rpath in existing:
                        logger.debug("  rpath 已存在: %s (%s)", rpath, binary.name)
                        continue
                    if self._add_rpath(binary, rpath):
                        added += 1
                        existing.add(rpath)
        logger.info("rpath 修补完成: %d 个文件, 追加 %d 条", len(binaries), added)
        return added

    def _current_rpaths(self, binary: Path) -> set[str]:
        """读取已有 rpath；patchelf 不拒绝重复追加，需先查询"""
        if self.platform == "darwin":
            return set()
        cmd = ["patchelf", "--print-rpath", str(binary)]
        r = self.executor.execute(cmd, cwd=str(binary.parent))
        if not r.success:
            raise PatchError(
                f"读取 rpath 失败 {binary.name}: {format_cmd(cmd)}",
                returncode=r.returncode, stderr=r.stderr,
            )
        return {p for p in r.stdout.strip().split(":") if p}

    def _add_rpath(self, binary: Path, rpath: str) -> bool:
        cmd = rpath_command(self.platform, binary, rpath)
        r = self.executor.execute(cmd, cwd=str(binary.parent))
        if r.success:
            logger.debug("  rpath %s -> %s", rpath, binary.name)
            return True
        if _DUPLICATE_RPATH in r.stderr:
            logger.debug("  rpath 已存在: %s (%s)", rpath, binary.name)
            return False
        raise PatchError(
            f"rpath 修补失败 {binary.name}: {format_cmd(cmd)}",
            returncode=r.returncode, stderr=r.stderr,
        )

    @staticmethod
    def relax_cache_permissions(paths: list[Path], mode: int = CACHE_MODE) -> list[Path]:
        """放宽缓存产物权限（不恢复）"""
        for p in paths:
            p.chmod(mode)
            logger.info("  权限放宽为 %o: %s", mode, p)
        return paths
