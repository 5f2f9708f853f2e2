"""LLVM 3.9 (Julia 补丁版) 构建配方 (cmake)"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from tapbuild.core.exceptions import BuildError, DependencyError
from tapbuild.core.flags import FlagSet, append_env
from tapbuild.core.models import (
    BuildCommand,
    BuildConfiguration,
    BuildContext,
    Resource,
    SmokeTest,
)
from tapbuild.recipes.base import BaseRecipe

if TYPE_CHECKING:
    from tapbuild.core.receipt import Receipt

logger = logging.getLogger(__name__)

DEFAULT_TARGETS = "AMDGPU;ARM;NVPTX;X86"

BASE_ARGS = (
    "-DLLVM_OPTIMIZED_TABLEGEN=ON",
    "-DLLVM_INCLUDE_DOCS=OFF",
    "-DLLVM_ENABLE_RTTI=ON",
    "-DLLVM_ENABLE_EH=ON",
    "-DLLVM_INSTALL_UTILS=ON",
)

PYTHON_BINDINGS = "lib/python2.7/site-packages"


def std_cmake_args(prefix: Path) -> list[str]:
    return [
        "-DCMAKE_C_FLAGS_RELEASE=-DNDEBUG",
        "-DCMAKE_CXX_FLAGS_RELEASE=-DNDEBUG",
        f"-DCMAKE_INSTALL_PREFIX={prefix}",
        "-DCMAKE_BUILD_TYPE=Release",
        "-DCMAKE_FIND_FRAMEWORK=LAST",
        "-DCMAKE_VERBOSE_MAKEFILE=ON",
        "-Wno-dev",
    ]


class LlvmRecipe(BaseRecipe):
    """LLVM 构建策略"""

    formula_name = "llvm39-julia"

    @staticmethod
    def build_libcxx(ctx: BuildContext) -> bool:
        """没有 Command Line Tools 时必须自带 libc++"""
        return ctx.options.with_("libcxx") or not ctx.host.clt_installed

    @staticmethod
    def _python_home(ctx: BuildContext) -> str:
        if not ctx.host.python_prefix:
            raise DependencyError(
                "构建 LLDB 需要 python-config（未在 PATH 中找到）",
                missing=["python-config"],
            )
        return ctx.host.python_prefix

    @staticmethod
    def _workdir(ctx: BuildContext) -> Path:
        return ctx.buildpath / "build"

    def environment(self, ctx: BuildContext) -> dict[str, str]:
        env: dict[str, str] = {}
        # 系统自带 libstdc++ 过旧
        if ctx.host.compiler == "clang":
            env["CXXFLAGS"] = append_env(ctx.env, "CXXFLAGS", "-stdlib=libc++")["CXXFLAGS"]
        if ctx.options.with_("lldb"):
            env["PYTHONHOME"] = self._python_home(ctx)
        if ctx.options.with_("ocaml"):
            env["OPAMYES"] = "1"
            env["OPAMROOT"] = str(self._workdir(ctx) / "opamroot")
        return env

    def assemble_flags(self, ctx: BuildContext) -> FlagSet:
        opts = ctx.options
        flags = FlagSet(std_cmake_args(ctx.layout.prefix))
        flags.extend(BASE_ARGS)
        targets = "all" if opts.with_("all-targets") else DEFAULT_TARGETS
        flags.add(f"-DLLVM_TARGETS_TO_BUILD={targets}")
        flags.add("-DLIBOMP_ARCH=x86_64")
        flags.add_if(opts.with_("toolchain"), "-DLLVM_CREATE_XCODE_TOOLCHAIN=ON")

        if opts.with_("shared-libs"):
            flags.add("-DBUILD_SHARED_LIBS=ON")
            flags.add("-DLIBOMP_ENABLE_SHARED=ON")
        else:
            flags.add("-DLLVM_BUILD_LLVM_DYLIB=ON")

        flags.add_if(self.build_libcxx(ctx), "-DLLVM_ENABLE_LIBCXX=ON")

        if opts.with_("lldb"):
            pyhome = self._python_home(ctx)
            flags.add("-DLLDB_RELOCATABLE_PYTHON=ON")
            flags.add(f"-DPYTHON_LIBRARY={pyhome}/lib/libpython2.7{ctx.host.shared_lib_suffix}")
            flags.add(f"-DPYTHON_INCLUDE_DIR={pyhome}/include/python2.7")

        if opts.with_("libffi"):
            flags.add("-DLLVM_ENABLE_FFI=ON")
            flags.add(f"-DFFI_INCLUDE_DIR={self._ffi_include_dir(ctx)}")
            flags.add(f"-DFFI_LIBRARY_DIR={ctx.opt_lib('libffi')}")
        return flags

    @staticmethod
    def _ffi_include_dir(ctx: BuildContext) -> Path:
        """libffi 头文件位于 lib/libffi-<version>/include"""
        candidates = sorted(ctx.opt_lib("libffi").glob("libffi-*/include"))
        if candidates:
            return candidates[-1]
        return ctx.opt_prefix("libffi") / "include"

    def resources(self, ctx: BuildContext) -> list[Resource]:
        formula = ctx.formula
        wanted: list[Resource] = []
        if self.build_libcxx(ctx):
            wanted.append(formula.resource("libcxx"))
        wanted.append(formula.resource("libunwind"))
        if ctx.options.with_("lldb"):
            wanted.append(formula.resource("lldb"))
        return wanted

    def build_commands(
        self, ctx: BuildContext, cfg: BuildConfiguration,
    ) -> list[BuildCommand]:
        work = self._workdir(ctx)
        cmds: list[BuildCommand] = []

        if ctx.options.with_("lldb"):
            # 登录钥匙串不在 superenv 搜索路径中，显式加入
            home = ctx.env.get("HOME", str(Path.home()))
            user = ctx.env.get("USER", "")
            cmds.append(BuildCommand(
                ("mkdir", "-p", f"{home}/Library/Preferences"), work, "keychain",
            ))
            cmds.append(BuildCommand(
                ("security", "list-keychains", "-d", "user", "-s",
                 f"/Users/{user}/Library/Keychains/login.keychain"),
                work, "keychain",
            ))

        configure = ("cmake", "-G", "Unix Makefiles", str(ctx.buildpath), *cfg.flags)
        if ctx.options.with_("ocaml"):
            cmds.append(BuildCommand(("mkdir", "-p", cfg.env["OPAMROOT"]), work, "opam"))
            cmds.append(BuildCommand(("opam", "init", "--no-setup"), work, "opam"))
            cmds.append(BuildCommand(("opam", "install", "ocamlfind", "ctypes"), work, "opam"))
            configure = ("opam", "config", "exec", "--", *configure)

        cmds.append(BuildCommand(configure, work, "cmake"))
        cmds.append(BuildCommand(("make",), work, "make"))
        cmds.append(BuildCommand(("make", "install"), work, "make install"))
        if ctx.options.with_("toolchain"):
            cmds.append(BuildCommand(
                ("make", "install-xcode-toolchain"), work, "make install-xcode-toolchain",
            ))
        return cmds

    def install_extras(self, ctx: BuildContext) -> None:
        """安装 llvm python 绑定"""
        src = ctx.buildpath / "bindings" / "python" / "llvm"
        if not src.is_dir():
            raise BuildError(f"python 绑定目录不存在: {src}")
        dest = ctx.layout.prefix / PYTHON_BINDINGS / "llvm"
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copytree(src, dest, dirs_exist_ok=True)
        logger.info("python 绑定已安装: %s", dest)

    def smoke_test(self, ctx: BuildContext) -> SmokeTest:
        return SmokeTest(
            argv=(str(ctx.layout.bin / "llvm-config"), "--prefix"),
            expect_stdout=str(ctx.layout.prefix),
        )

    def caveats(self, ctx: BuildContext, receipts: dict[str, Receipt | None]) -> str:
        layout = ctx.layout
        s = (
            f"LLVM executables are installed in {layout.opt_bin}.\n"
            f"Extra tools are installed in {layout.opt_pkgshare}.\n"
        )
        if self.build_libcxx(ctx):
            s += (
                "To use the bundled libc++ please add the following LDFLAGS:\n"
                f'  LDFLAGS="-L{layout.opt_lib} -Wl,-rpath,{layout.opt_lib}"\n'
            )
        return s
