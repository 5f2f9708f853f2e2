"""源码拉取单元测试"""

from __future__ import annotations

import hashlib
import io
import shutil
import tarfile
from pathlib import Path

import pytest

from tapbuild.core.exceptions import FetchError, ValidationError
from tapbuild.core.models import PatchSpec, Resource, SourceSpec
from tapbuild.services.fetch import ArchiveSource, GitSource, SourceFetcher


def _make_tarball(tmp_path: Path, top: str = "llvm-3.9.1.src") -> Path:
    src = tmp_path / "tarball-src" / top
    (src / "bindings" / "python" / "llvm").mkdir(parents=True)
    (src / "CMakeLists.txt").write_text("project(LLVM)\n")
    archive = tmp_path / f"{top}.tar.xz"
    with tarfile.open(archive, "w:xz") as tf:
        tf.add(src, arcname=top)
    return archive


def _sha256(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


class CopyDownloader:
    """把本地文件当作下载结果"""

    def __init__(self, source: Path) -> None:
        self.source = source
        self.urls: list[str] = []

    def __call__(self, url: str, dest: Path) -> None:
        self.urls.append(url)
        shutil.copy(self.source, dest)


class TestGitSource:
    def test_full_history_clone(self, executor, tmp_path: Path) -> None:
        executor.respond("git rev-parse --is-shallow-repository", stdout="true\n")
        executor.respond("git rev-parse HEAD", stdout="d55cadc3504a3dd6f5a0b66aa6e8ae36498f5f26\n")
        spec = SourceSpec(url="https://github.com/JuliaLang/julia.git", tag="v0.6.3", shallow=False)
        dest = tmp_path / "build" / "julia-0.6.3"

        tree = GitSource(tmp_path / "cache", executor).fetch("julia", spec, dest)

        cache = str(tmp_path / "cache" / "julia--git")
        assert executor.commands("git") == [
            ["git", "clone", "--branch", "v0.6.3", spec.url, cache],
            ["git", "rev-parse", "--is-shallow-repository"],
            ["git", "fetch", "--unshallow", "--tags", "origin"],
            ["git", "checkout", "--quiet", "--detach", "v0.6.3"],
            ["git", "clone", "--quiet", cache, str(dest)],
            ["git", "rev-parse", "HEAD"],
        ]
        assert tree.version == "0.6.3"
        assert tree.commit.startswith("d55cadc")
        assert tree.ref == "v0.6.3"

    def test_existing_cache_fetches(self, executor, tmp_path: Path) -> None:
        cache = tmp_path / "cache" / "julia--git"
        (cache / ".git").mkdir(parents=True)
        spec = SourceSpec(url="https://github.com/JuliaLang/julia.git", branch="master", shallow=False)

        GitSource(tmp_path / "cache", executor).fetch("julia", spec, tmp_path / "dest")

        lines = executor.lines()
        assert lines[0] == "git fetch --tags --force origin"
        assert "git checkout --quiet --detach origin/master" in lines
        assert not any("--unshallow" in line for line in lines)

    def test_shallow_clone(self, executor, tmp_path: Path) -> None:
        spec = SourceSpec(url="https://example.com/x.git", tag="v1.0")
        GitSource(tmp_path / "cache", executor).fetch("x", spec, tmp_path / "dest")
        assert executor.commands("git")[0][:5] == ["git", "clone", "--depth", "1", "--branch"]

    def test_clone_failure(self, executor, tmp_path: Path) -> None:
        executor.respond("git clone", returncode=128, stderr="fatal: repository not found\n")
        spec = SourceSpec(url="https://example.com/x.git", tag="v1.0")
        with pytest.raises(FetchError) as exc:
            GitSource(tmp_path / "cache", executor).fetch("x", spec, tmp_path / "dest")
        assert exc.value.returncode == 128
        assert "repository not found" in exc.value.stderr

    def test_unsafe_ref(self, executor, tmp_path: Path) -> None:
        spec = SourceSpec(url="https://example.com/x.git", tag="v1;rm -rf /")
        with pytest.raises(ValidationError):
            GitSource(tmp_path / "cache", executor).fetch("x", spec, tmp_path / "dest")


class TestArchiveSource:
    def test_extract_strips_top_dir(self, tmp_path: Path) -> None:
        archive = _make_tarball(tmp_path)
        spec = SourceSpec(url="https://llvm.org/releases/3.9.1/llvm-3.9.1.src.tar.xz",
                          sha256=_sha256(archive), version="3.9.1")
        dest = tmp_path / "build" / "llvm"
        downloader = CopyDownloader(archive)

        tree = ArchiveSource(tmp_path / "cache", downloader).fetch("llvm39-julia", spec, dest)

        assert (dest / "CMakeLists.txt").is_file()
        assert (dest / "bindings" / "python" / "llvm").is_dir()
        assert tree.version == "3.9.1"
        assert (tmp_path / "cache" / "llvm39-julia--llvm-3.9.1.src.tar.xz").is_file()

    def test_cached_download_reused(self, tmp_path: Path) -> None:
        archive = _make_tarball(tmp_path)
        spec = SourceSpec(url="https://llvm.org/llvm-3.9.1.src.tar.xz", version="3.9.1")
        downloader = CopyDownloader(archive)
        source = ArchiveSource(tmp_path / "cache", downloader)
        source.fetch("llvm", spec, tmp_path / "a")
        source.fetch("llvm", spec, tmp_path / "b")
        assert len(downloader.urls) == 1

    def test_checksum_mismatch(self, tmp_path: Path) -> None:
        archive = _make_tarball(tmp_path)
        spec = SourceSpec(url="https://llvm.org/llvm-3.9.1.src.tar.xz", sha256="0" * 64)
        with pytest.raises(FetchError, match="校验和不匹配"):
            ArchiveSource(tmp_path / "cache", CopyDownloader(archive)).fetch(
                "llvm", spec, tmp_path / "dest",
            )
        assert not (tmp_path / "cache" / "llvm--llvm-3.9.1.src.tar.xz").exists()

    def test_member_outside_dest_rejected(self, tmp_path: Path) -> None:
        archive = tmp_path / "evil.tar.xz"
        with tarfile.open(archive, "w:xz") as tf:
            data = b"pwned\n"
            info = tarfile.TarInfo("../evil.txt")
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
        spec = SourceSpec(url="https://llvm.org/evil.tar.xz")
        dest = tmp_path / "build" / "llvm"
        with pytest.raises(FetchError, match="解压失败"):
            ArchiveSource(tmp_path / "cache", CopyDownloader(archive)).fetch("llvm", spec, dest)
        assert not (tmp_path / "build" / "evil.txt").exists()

    def test_download_failure(self, tmp_path: Path) -> None:
        def broken(url: str, dest: Path) -> None:
            dest.write_text("partial")
            raise OSError("connection reset")

        spec = SourceSpec(url="https://llvm.org/llvm-3.9.1.src.tar.xz")
        with pytest.raises(FetchError, match="connection reset"):
            ArchiveSource(tmp_path / "cache", broken).fetch("llvm", spec, tmp_path / "dest")
        assert not (tmp_path / "cache" / "llvm--llvm-3.9.1.src.tar.xz").exists()


class TestSourceFetcher:
    @pytest.fixture()
    def patch_file(self, tmp_path: Path) -> Path:
        p = tmp_path / "fix.patch"
        p.write_text("--- a/x\n+++ b/x\n")
        return p

    def test_apply_patches_in_order(self, executor, tmp_path: Path, patch_file: Path) -> None:
        fetcher = SourceFetcher(tmp_path / "cache", executor, CopyDownloader(patch_file))
        patches = (
            PatchSpec("https://example.com/patches/llvm-PR22923.patch"),
            PatchSpec("https://example.com/patches/llvm-D27389.patch", strip=0),
        )
        workdir = tmp_path / "src"

        assert fetcher.apply_patches("llvm39-julia", patches, workdir) == 2

        cmds = executor.commands("patch")
        assert [c[4] for c in cmds] == ["-p1", "-p0"]
        assert cmds[0][-1].endswith("llvm39-julia--patches/llvm-PR22923.patch")
        assert all(c["cwd"] == str(workdir) for c in executor.calls)

    def test_patch_failure(self, executor, tmp_path: Path, patch_file: Path) -> None:
        executor.respond("patch", returncode=1, stdout="Hunk #1 FAILED at 12.\n")
        fetcher = SourceFetcher(tmp_path / "cache", executor, CopyDownloader(patch_file))
        with pytest.raises(FetchError, match="llvm-D32593.patch") as exc:
            fetcher.apply_patches(
                "llvm39-julia", (PatchSpec("https://e.com/llvm-D32593.patch"),), tmp_path,
            )
        assert "Hunk #1 FAILED" in exc.value.stderr

    def test_stage_resource(self, executor, tmp_path: Path) -> None:
        archive = _make_tarball(tmp_path, top="libunwind-3.9.1.src")
        res = Resource(
            name="libunwind", destination="projects/libunwind",
            stable=SourceSpec(url="https://llvm.org/libunwind-3.9.1.src.tar.xz", version="3.9.1"),
        )
        fetcher = SourceFetcher(tmp_path / "cache", executor, CopyDownloader(archive))
        dest = fetcher.stage_resource("llvm39-julia", res, tmp_path / "build")
        assert dest == tmp_path / "build" / "projects" / "libunwind"
        assert (dest / "CMakeLists.txt").is_file()

    def test_dispatch_by_kind(self, executor, registry, tmp_path: Path) -> None:
        fetcher = SourceFetcher(tmp_path / "cache", executor)
        fetcher.fetch(registry.require("julia"), tmp_path / "julia")
        assert executor.commands("git")
