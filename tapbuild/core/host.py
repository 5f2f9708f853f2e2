"""主机信息检测

在流水线开始时检测一次，得到不可变 HostFacts 并显式向下传递；
后续阶段只读取快照，不再访问或修改 os.environ。
"""

from __future__ import annotations

import logging
import os
import platform
import shutil
from pathlib import Path

from tapbuild.core.models import HostFacts
from tapbuild.utils.shell import CommandExecutor, get_executor

logger = logging.getLogger(__name__)

_CLT_CLANG = Path("/Library/Developer/CommandLineTools/usr/bin/clang")

_GENERIC_DRIVERS = frozenset(("cc", "c++"))


def detect_compiler(env: dict[str, str], system: str) -> str:
    """按 HOMEBREW_CC > CC 识别编译器，未指定时 darwin 取 clang、其余取 gcc"""
    raw = env.get("HOMEBREW_CC") or env.get("CC") or ""
    name = os.path.basename(raw.split()[0]) if raw.strip() else ""
    # cc / c++ 只是系统默认编译器的别名
    if not name or name in _GENERIC_DRIVERS:
        return "clang" if system == "darwin" else "gcc"
    if "clang" in name:
        return "clang"
    if name.startswith(("gcc", "llvm-gcc")):
        # gcc-4.6 / gcc-12 保留版本后缀
        return name.replace("llvm-gcc", "gcc")
    return name


def detect_python_prefix(
    env: dict[str, str], executor: CommandExecutor | None = None,
) -> str:
    """python-config --prefix，不可用时返回空串"""
    if shutil.which("python-config", path=env.get("PATH")) is None:
        return ""
    r = (executor or get_executor()).execute(["python-config", "--prefix"], env=env)
    return r.stdout.strip() if r.success else ""


def detect_host(
    environ: dict[str, str] | None = None,
    executor: CommandExecutor | None = None,
) -> HostFacts:
    """检测主机信息并快照环境变量"""
    env = dict(os.environ if environ is None else environ)
    system = platform.system().lower()
    if system == "darwin":
        os_version = platform.mac_ver()[0]
        clt = _CLT_CLANG.exists()
    else:
        os_version = platform.release()
        clt = True

    host = HostFacts(
        platform=system,
        os_version=os_version,
        compiler=detect_compiler(env, system),
        clt_installed=clt,
        python_prefix=detect_python_prefix(env, executor),
        env=env,
    )
    logger.info(
        "主机: %s %s, 编译器=%s", host.platform, host.os_version, host.compiler,
    )
    return host
