"""LLVM 配方单元测试"""

from __future__ import annotations

import pytest

from tapbuild.core.exceptions import BuildError, DependencyError
from tapbuild.recipes import get_recipe
from tapbuild.recipes.llvm import BASE_ARGS, DEFAULT_TARGETS, PYTHON_BINDINGS

PY = "/usr/local/opt/python@2/Frameworks/Python.framework/Versions/2.7"


@pytest.fixture()
def recipe():
    return get_recipe("llvm39-julia")


class TestFlags:
    def test_defaults(self, recipe, make_ctx, config) -> None:
        ctx = make_ctx("llvm39-julia")
        cfg = recipe.configure(ctx)
        flags = cfg.flags
        prefix = config.cellar_path / "llvm39-julia" / "3.9.1_1"

        assert f"-DCMAKE_INSTALL_PREFIX={prefix}" in flags
        assert flags[7:12] == BASE_ARGS
        assert f"-DLLVM_TARGETS_TO_BUILD={DEFAULT_TARGETS}" in flags
        assert "-DLIBOMP_ARCH=x86_64" in flags
        assert "-DLLVM_BUILD_LLVM_DYLIB=ON" in flags
        assert "-DBUILD_SHARED_LIBS=ON" not in flags
        assert "-DLLVM_ENABLE_LIBCXX=ON" in flags
        assert "-DLLVM_ENABLE_FFI=ON" in flags
        assert "-DLLVM_CREATE_XCODE_TOOLCHAIN=ON" not in flags
        assert cfg.goals == ()

    def test_option_variants(self, recipe, make_ctx) -> None:
        ctx = make_ctx("llvm39-julia", (
            "with-all-targets", "with-shared-libs", "with-toolchain",
            "without-libffi", "without-libcxx",
        ))
        flags = recipe.configure(ctx).flags
        assert "-DLLVM_TARGETS_TO_BUILD=all" in flags
        assert "-DBUILD_SHARED_LIBS=ON" in flags
        assert "-DLIBOMP_ENABLE_SHARED=ON" in flags
        assert "-DLLVM_BUILD_LLVM_DYLIB=ON" not in flags
        assert "-DLLVM_CREATE_XCODE_TOOLCHAIN=ON" in flags
        assert not any(f.startswith("-DLLVM_ENABLE_FFI") for f in flags)
        assert "-DLLVM_ENABLE_LIBCXX=ON" not in flags

    def test_libcxx_forced_without_clt(self, recipe, make_ctx, make_host) -> None:
        ctx = make_ctx("llvm39-julia", ("without-libcxx",), host=make_host(clt_installed=False))
        assert "-DLLVM_ENABLE_LIBCXX=ON" in recipe.configure(ctx).flags

    def test_ffi_include_dir(self, recipe, make_ctx, config) -> None:
        inc = config.prefix_path / "opt" / "libffi" / "lib" / "libffi-3.2.1" / "include"
        inc.mkdir(parents=True)
        flags = recipe.configure(make_ctx("llvm39-julia")).flags
        assert f"-DFFI_INCLUDE_DIR={inc}" in flags

    def test_lldb_python(self, recipe, make_ctx, make_host) -> None:
        ctx = make_ctx("llvm39-julia", ("with-lldb",), host=make_host(python_prefix=PY))
        cfg = recipe.configure(ctx)
        assert "-DLLDB_RELOCATABLE_PYTHON=ON" in cfg.flags
        assert f"-DPYTHON_LIBRARY={PY}/lib/libpython2.7.dylib" in cfg.flags
        assert f"-DPYTHON_INCLUDE_DIR={PY}/include/python2.7" in cfg.flags
        assert cfg.env["PYTHONHOME"] == PY

    def test_lldb_without_python_config(self, recipe, make_ctx) -> None:
        with pytest.raises(DependencyError, match="python-config"):
            recipe.configure(make_ctx("llvm39-julia", ("with-lldb",)))


class TestEnvironment:
    def test_clang_uses_libcxx(self, recipe, make_ctx, make_host) -> None:
        host = make_host(env={"CXXFLAGS": "-O2"})
        env = recipe.configure(make_ctx("llvm39-julia", host=host)).env
        assert env["CXXFLAGS"] == "-O2 -stdlib=libc++"

    def test_gcc(self, recipe, make_ctx, make_host) -> None:
        ctx = make_ctx("llvm39-julia", host=make_host(platform="linux", compiler="gcc"))
        assert "CXXFLAGS" not in recipe.configure(ctx).env

    def test_ocaml(self, recipe, make_ctx) -> None:
        ctx = make_ctx("llvm39-julia", ("with-ocaml",))
        env = recipe.configure(ctx).env
        assert env["OPAMYES"] == "1"
        assert env["OPAMROOT"] == str(ctx.buildpath / "build" / "opamroot")


class TestResources:
    def test_default(self, recipe, make_ctx) -> None:
        names = [r.name for r in recipe.resources(make_ctx("llvm39-julia"))]
        assert names == ["libcxx", "libunwind"]

    def test_without_libcxx_with_lldb(self, recipe, make_ctx) -> None:
        ctx = make_ctx("llvm39-julia", ("without-libcxx", "with-lldb"))
        assert [r.name for r in recipe.resources(ctx)] == ["libunwind", "lldb"]


class TestBuildCommands:
    def test_default_sequence(self, recipe, make_ctx) -> None:
        ctx = make_ctx("llvm39-julia")
        cfg = recipe.configure(ctx)
        cmds = recipe.build_commands(ctx, cfg)
        assert [c.argv[:2] for c in cmds] == [
            ("cmake", "-G"), ("make",), ("make", "install"),
        ]
        assert cmds[0].argv[2:4] == ("Unix Makefiles", str(ctx.buildpath))
        assert cmds[0].argv[4:] == cfg.flags
        assert all(c.cwd == ctx.buildpath / "build" for c in cmds)

    def test_ocaml_wraps_configure(self, recipe, make_ctx) -> None:
        ctx = make_ctx("llvm39-julia", ("with-ocaml", "with-toolchain"))
        cmds = recipe.build_commands(ctx, recipe.configure(ctx))
        argvs = [c.argv for c in cmds]
        assert argvs[1] == ("opam", "init", "--no-setup")
        assert argvs[3][:5] == ("opam", "config", "exec", "--", "cmake")
        assert argvs[-1] == ("make", "install-xcode-toolchain")

    def test_lldb_keychain(self, recipe, make_ctx, make_host) -> None:
        ctx = make_ctx("llvm39-julia", ("with-lldb",), host=make_host(python_prefix=PY))
        cmds = recipe.build_commands(ctx, recipe.configure(ctx))
        assert cmds[0].argv == ("mkdir", "-p", "/Users/dev/Library/Preferences")
        assert cmds[1].argv[-1] == "/Users/dev/Library/Keychains/login.keychain"


class TestInstallExtras:
    def test_copies_python_bindings(self, recipe, make_ctx) -> None:
        ctx = make_ctx("llvm39-julia")
        src = ctx.buildpath / "bindings" / "python" / "llvm"
        src.mkdir(parents=True)
        (src / "core.py").write_text("")
        recipe.install_extras(ctx)
        assert (ctx.layout.prefix / PYTHON_BINDINGS / "llvm" / "core.py").is_file()

    def test_missing_bindings(self, recipe, make_ctx) -> None:
        with pytest.raises(BuildError, match="python"):
            recipe.install_extras(make_ctx("llvm39-julia"))


class TestSmokeTest:
    def test_expects_prefix(self, recipe, make_ctx) -> None:
        ctx = make_ctx("llvm39-julia")
        smoke = recipe.smoke_test(ctx)
        assert smoke.argv == (str(ctx.layout.bin / "llvm-config"), "--prefix")
        assert smoke.expect_stdout == str(ctx.layout.prefix)
        assert smoke.required_dir is None

    def test_head_version(self, make_ctx) -> None:
        ctx = make_ctx("llvm39-julia", head=True)
        assert ctx.layout.prefix.name == "HEAD"
