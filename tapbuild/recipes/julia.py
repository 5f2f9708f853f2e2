"""Julia 构建配方 (make)

Julia 的 make 构建通过 USE_SYSTEM_* 开关使用外部依赖，
并在安装后为 julia* 可执行文件追加依赖库的 rpath。
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from tapbuild.core.flags import FlagSet, append_env
from tapbuild.core.models import BuildCommand, BuildConfiguration, BuildContext, SmokeTest
from tapbuild.recipes.base import BaseRecipe, lib_name

if TYPE_CHECKING:
    from tapbuild.core.receipt import Receipt

LLVM_FORMULA = "llvm39-julia"
LLVM_VERSION = "3.9.1"

# 全部改用外部提供的依赖
SYSTEM_DEPS = (
    "FFTW", "GLPK", "GMP", "LLVM", "PCRE", "BLAS", "LAPACK",
    "SUITESPARSE", "ARPACK", "MPFR", "LIBGIT2",
)

# 引导阶段 julia 只在 usr/lib 与系统默认路径查找动态库
BOOTSTRAP_LIBS = (
    ("openblas", "libopenblas"),
    ("arpack", "libarpack"),
    ("pcre2", "libpcre2-8"),
    ("mpfr", "libmpfr"),
    ("gmp", "libgmp"),
    ("libgit2", "libgit2"),
)

RPATH_FORMULAE = ("arpack", "suite-sparse", "openblas")

# 10.8 起 libxstub 会与 X11 路径冲突
X11_MAX_OS = "10.8"

BOTTLE_MARCH = "core2"


class JuliaRecipe(BaseRecipe):
    """Julia 构建策略"""

    formula_name = "julia"

    def environment(self, ctx: BuildContext) -> dict[str, str]:
        base = ctx.env
        env: dict[str, str] = {
            "PLATFORM": ctx.host.platform,
            "PYTHONPATH": "",
            "CPPFLAGS": append_env(base, "CPPFLAGS", "-DUSE_ORCJIT")["CPPFLAGS"],
        }
        if ctx.host.is_darwin:
            # 为后续改写 rpath 预留 Mach-O 头部空间
            env["LDFLAGS"] = append_env(
                base, "LDFLAGS", "-headerpad_max_install_names",
            )["LDFLAGS"]
        if "FC" in ctx.extra_env:
            env["FC"] = ctx.extra_env["FC"]
        return env

    def assemble_flags(self, ctx: BuildContext) -> FlagSet:
        prefix = ctx.layout.prefix
        flags = FlagSet([
            f"prefix={prefix}",
            "USE_BLAS64=0",
            'TAGGED_RELEASE_BANNER="homebrew-julia release"',
        ])

        fc = ctx.env.get("FC", "")
        flags.add_if(bool(fc), f"FC={fc}")

        # llvm-config 不在标准位置
        llvm = ctx.opt_prefix(LLVM_FORMULA)
        flags.add(f"LLVM_CONFIG={llvm}/bin/llvm-config")
        flags.add(f"LLVM_VER={LLVM_VERSION}")

        flags.add(f"LOCALBASE={prefix}")

        flags.add_if(ctx.host.compiler == "clang", "USECLANG=1")
        flags.add_if(ctx.verbose, "VERBOSE=1")

        flags.extend([
            "LIBBLAS=-lopenblas",
            "LIBBLASNAME=libopenblas",
            "LIBLAPACK=-lopenblas",
            "LIBLAPACKNAME=libopenblas",
        ])
        flags.extend(f"USE_SYSTEM_{dep}=1" for dep in SYSTEM_DEPS)
        flags.add_if(ctx.options.with_("system-libm"), "USE_SYSTEM_LIBM=1")
        return flags

    def bottle_flags(self, ctx: BuildContext) -> list[str]:
        return [f"MARCH={BOTTLE_MARCH}"]

    def make_goals(self, ctx: BuildContext) -> tuple[str, ...]:
        return ("release", "debug")

    def library_links(self, ctx: BuildContext) -> list[Path]:
        return [
            ctx.opt_lib(formula) / lib_name(stem, ctx)
            for formula, stem in BOOTSTRAP_LIBS
        ]

    def build_commands(
        self, ctx: BuildContext, cfg: BuildConfiguration,
    ) -> list[BuildCommand]:
        """构建与安装两次 make 调用使用同一组标志"""
        return [
            BuildCommand(("make", *cfg.goals, *cfg.flags), ctx.buildpath, "make"),
            BuildCommand(("make", "install", *cfg.flags), ctx.buildpath, "make install"),
        ]

    def rpaths(self, ctx: BuildContext) -> list[str]:
        paths = [str(ctx.opt_lib(f)) for f in RPATH_FORMULAE]
        paths.append(str(ctx.layout.homebrew_prefix / "lib"))
        if ctx.host.is_darwin and not ctx.host.os_at_least(X11_MAX_OS):
            paths.append("/usr/X11/lib")
        return paths

    def patch_targets(self, ctx: BuildContext) -> list[Path]:
        return sorted(ctx.layout.bin.glob("julia*"))

    def cache_artifacts(self, ctx: BuildContext) -> list[Path]:
        """sys.{dylib,ji} 需可写，以便 build_sysimg.jl 重新生成"""
        libdir = ctx.layout.lib / "julia"
        found: list[Path] = []
        for suffix in (ctx.host.shared_lib_suffix, ".ji"):
            found.extend(sorted(libdir.glob(f"sys*{suffix}")))
        return found

    def smoke_test(self, ctx: BuildContext) -> SmokeTest:
        if ctx.head:
            hint = "Did you accidentally include --HEAD in the test invocation?"
        else:
            hint = "Did you mean to include --HEAD in the test invocation?"
        return SmokeTest(
            argv=(str(ctx.layout.opt_bin / "julia"), "-e", 'Base.runtests("core")'),
            required_dir=ctx.layout.opt_pkgshare / "test",
            missing_hint=f"Could not find test files directory\n{hint}",
        )

    def caveat_dependencies(self) -> list[str]:
        return ["arpack", "suite-sparse"]

    def caveats(self, ctx: BuildContext, receipts: dict[str, Receipt | None]) -> str:
        head_flag = " --HEAD " if ctx.head else " "
        pkgshare = ctx.layout.opt_pkgshare
        s = (
            "Documentation and Examples have been installed into:\n"
            f"{pkgshare}\n\n"
            "Test suite has been installed into:\n"
            f"{pkgshare}/test\n\n"
            "To perform a quick sanity check, run the command:\n"
            f"tapbuild test{head_flag}julia\n\n"
            "To crunch through the full test suite, run the command:\n"
            f'{ctx.layout.bin}/julia -e "Base.runtests()"\n'
        )

        def _without_openblas(name: str) -> bool:
            receipt = receipts.get(name)
            return receipt is not None and receipt.built_without("openblas")

        arpack = _without_openblas("arpack")
        suitesparse = _without_openblas("suite-sparse")
        if arpack or suitesparse:
            s += "\nNote:\n"
        if arpack:
            s += "Arpack uses different BLAS/LAPACK than Julia.\n"
        if suitesparse:
            s += "SuiteSparse uses different BLAS/LAPACK than Julia.\n"
        if arpack or suitesparse:
            s += (
                "Normally, that should not cause problems. However, you may recompile\n"
                "arpack and/or suite-sparse from source --with-openblas if you desire.\n"
            )
        return s
