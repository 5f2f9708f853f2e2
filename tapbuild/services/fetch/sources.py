"""源码来源适配器 - 支持 Git / 归档包

职责:
- Git 仓库先克隆到下载缓存，再从缓存本地克隆到构建目录（保留 .git 元数据）
- shallow=False 时保证完整历史（浅克隆缓存会被 unshallow）
- 归档包下载到缓存，校验 sha256，剥离唯一的顶层目录后解压
"""

from __future__ import annotations

import hashlib
import logging
import re
import shutil
import tarfile
import tempfile
import urllib.error
import urllib.request
from pathlib import Path
from typing import Callable

from tapbuild.core.exceptions import FetchError, ValidationError
from tapbuild.core.models import SourceSpec, SourceTree
from tapbuild.utils.net import validate_url_scheme
from tapbuild.utils.shell import CommandExecutor, CommandResult, get_executor

logger = logging.getLogger(__name__)

_SAFE_REF_RE = re.compile(r"^[a-zA-Z0-9_./@\-]+$")

Downloader = Callable[[str, Path], None]


def urlretrieve(url: str, dest: Path) -> None:
    """默认下载实现"""
    validate_url_scheme(url, context="download")
    urllib.request.urlretrieve(url, str(dest))  # nosec B310


def download_file(url: str, dest: Path, downloader: Downloader | None = None) -> Path:
    """下载到 dest，已存在则直接复用；失败时删除残留文件并抛 FetchError"""
    if dest.exists():
        logger.info("  缓存命中: %s", dest)
        return dest
    dest.parent.mkdir(parents=True, exist_ok=True)
    logger.info("  下载: %s", url)
    try:
        (downloader or urlretrieve)(url, dest)
    except (urllib.error.URLError, OSError) as e:
        dest.unlink(missing_ok=True)
        raise FetchError(f"下载失败: {url} - {e}") from e
    return dest


def verify_checksum(path: Path, expected: str) -> None:
    """sha256 不匹配时删除缓存文件并抛 FetchError"""
    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            sha256.update(chunk)
    actual = sha256.hexdigest()
    if actual != expected:
        path.unlink(missing_ok=True)
        raise FetchError(f"校验和不匹配 {path.name}: 期望 {expected}, 实际 {actual}")
    logger.info("  校验和通过: %s", path.name)


def extract_stripped(archive: Path, dest: Path) -> None:
    """解压归档；若只有一个顶层目录，则将其内容直接放到 dest 下"""
    dest.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(dir=str(dest.parent)) as tmp:
        try:
            with tarfile.open(archive) as tf:
                tf.extractall(path=tmp, filter="data")  # noqa: S202
        except (tarfile.TarError, OSError) as e:
            raise FetchError(f"解压失败 {archive.name}: {e}") from e
        entries = list(Path(tmp).iterdir())
        root = entries[0] if len(entries) == 1 and entries[0].is_dir() else Path(tmp)
        for child in root.iterdir():
            shutil.move(str(child), str(dest / child.name))


class GitSource:
    """Git 仓库来源"""

    def __init__(self, cache_root: Path, executor: CommandExecutor | None = None) -> None:
        self.cache_root = cache_root
        self.executor = executor or get_executor()

    def fetch(self, name: str, spec: SourceSpec, dest: Path) -> SourceTree:
        """更新下载缓存并检出到 dest"""
        validate_url_scheme(spec.url, context=name, git=True)
        if spec.ref and not _SAFE_REF_RE.match(spec.ref):
            raise ValidationError(f"ref 包含非法字符: {spec.ref}")

        cache = self.cache_root / f"{name}--git"
        self._update_cache(spec, cache)

        if dest.exists():
            shutil.rmtree(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        self._git(["clone", "--quiet", str(cache), str(dest)], cwd=dest.parent)

        commit = self._git(["rev-parse", "HEAD"], cwd=dest).stdout.strip()
        logger.info("Git 就绪: %s@%s -> %s (%s)", name, spec.ref or "HEAD", dest, commit[:12])
        return SourceTree(
            path=dest, version=spec.resolved_version(),
            commit=commit, url=spec.url, ref=spec.ref,
        )

    def _update_cache(self, spec: SourceSpec, cache: Path) -> None:
        if (cache / ".git").exists():
            if spec.shallow:
                self._git(["fetch", "--depth", "1", "origin", spec.ref or "HEAD"], cwd=cache)
            else:
                self._git(["fetch", "--tags", "--force", "origin"], cwd=cache)
        else:
            cache.parent.mkdir(parents=True, exist_ok=True)
            args = ["clone"]
            if spec.shallow:
                args += ["--depth", "1"]
            if spec.ref:
                args += ["--branch", spec.ref]
            self._git([*args, spec.url, str(cache)], cwd=cache.parent)

        if not spec.shallow and self._is_shallow(cache):
            logger.info("  缓存为浅克隆，拉取完整历史: %s", cache)
            self._git(["fetch", "--unshallow", "--tags", "origin"], cwd=cache)

        target = self._checkout_target(spec, cache)
        self._git(["checkout", "--quiet", "--detach", target], cwd=cache)

    @staticmethod
    def _checkout_target(spec: SourceSpec, cache: Path) -> str:
        if spec.shallow and (cache / ".git" / "FETCH_HEAD").exists():
            return "FETCH_HEAD"
        if spec.tag:
            return spec.tag
        if spec.branch:
            return f"origin/{spec.branch}"
        return "HEAD"

    def _is_shallow(self, cache: Path) -> bool:
        r = self._git(["rev-parse", "--is-shallow-repository"], cwd=cache)
        return r.stdout.strip() == "true"

    def _git(self, args: list[str], *, cwd: Path) -> CommandResult:
        r = self.executor.execute(["git", *args], cwd=str(cwd))
        if not r.success:
            raise FetchError(
                f"git {args[0]} 失败 (rc={r.returncode})",
                returncode=r.returncode, stderr=r.stderr,
            )
        return r


class ArchiveSource:
    """归档包来源"""

    def __init__(self, cache_root: Path, downloader: Downloader | None = None) -> None:
        self.cache_root = cache_root
        self.downloader = downloader

    def fetch(self, name: str, spec: SourceSpec, dest: Path) -> SourceTree:
        filename = spec.url.rstrip("/").split("/")[-1]
        if not filename:
            raise FetchError(f"无法从 URL 解析文件名: {spec.url}")
        archive = download_file(
            spec.url, self.cache_root / f"{name}--{filename}", self.downloader,
        )
        if spec.sha256:
            verify_checksum(archive, spec.sha256)

        if dest.exists():
            shutil.rmtree(dest)
        extract_stripped(archive, dest)
        logger.info("归档解压就绪: %s -> %s", archive.name, dest)
        return SourceTree(
            path=dest, version=spec.resolved_version(), url=spec.url,
        )
