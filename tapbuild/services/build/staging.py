"""构建目录与安装目录的软链接管理

- link_libraries: 构建前把依赖动态库软链接到 buildpath/usr/lib，
  让引导阶段在最终改写 rpath 之前就能找到它们
- link_opt_prefix: 安装后将 <homebrew_prefix>/opt/<name> 指向新前缀
"""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def _replace_symlink(link: Path, target: Path) -> None:
    if link.is_symlink() or link.is_file():
        link.unlink()
    link.symlink_to(target)


def link_libraries(buildpath: Path, libraries: list[Path]) -> list[Path]:
    """在 buildpath/usr/lib 下创建依赖库软链接，已存在的同名链接会被替换"""
    if not libraries:
        return []
    libdir = buildpath / "usr" / "lib"
    libdir.mkdir(parents=True, exist_ok=True)
    links: list[Path] = []
    for lib in libraries:
        if not lib.exists():
            logger.warning("依赖库不存在，链接将悬空: %s", lib)
        link = libdir / lib.name
        _replace_symlink(link, lib)
        links.append(link)
    logger.info("已链接 %d 个依赖库到 %s", len(links), libdir)
    return links


def link_opt_prefix(opt_prefix: Path, prefix: Path) -> Path:
    """opt/<name> -> Cellar/<name>/<version>"""
    opt_prefix.parent.mkdir(parents=True, exist_ok=True)
    _replace_symlink(opt_prefix, prefix)
    logger.info("opt 链接: %s -> %s", opt_prefix, prefix)
    return opt_prefix
