"""FlagSet 单元测试"""

from __future__ import annotations

import itertools

import pytest

from tapbuild.core.flags import FlagSet, append_env, flag_key
from tapbuild.recipes import get_recipe


class TestFlagKey:
    @pytest.mark.parametrize(("flag", "key"), [
        ("USE_SYSTEM_LLVM=1", "USE_SYSTEM_LLVM"),
        ("-DLLVM_TARGETS_TO_BUILD=AMDGPU;ARM", "-DLLVM_TARGETS_TO_BUILD"),
        ('TAGGED_RELEASE_BANNER="a=b"', "TAGGED_RELEASE_BANNER"),
        ("-Wno-dev", "-Wno-dev"),
    ])
    def test_key_before_first_equals(self, flag: str, key: str) -> None:
        assert flag_key(flag) == key


class TestFlagSet:
    def test_keeps_insertion_order(self) -> None:
        fs = FlagSet(["A=1", "B=2", "C"])
        assert fs.to_list() == ["A=1", "B=2", "C"]

    def test_last_writer_wins_in_place(self) -> None:
        fs = FlagSet(["A=1", "B=2"])
        fs.add("A=3")
        assert fs.to_list() == ["A=3", "B=2"]
        assert fs.get("A") == "3"

    def test_add_if(self) -> None:
        fs = FlagSet()
        fs.add_if(False, "X=1").add_if(True, "Y=1")
        assert "X" not in fs
        assert "Y" in fs

    def test_get_bare_and_missing(self) -> None:
        fs = FlagSet(["-Wno-dev"])
        assert fs.get("-Wno-dev") == ""
        assert fs.get("nope") is None

    def test_discard(self) -> None:
        fs = FlagSet(["A=1"])
        assert fs.discard("A") is True
        assert fs.discard("A") is False
        assert len(fs) == 0


class TestAppendEnv:
    def test_appends_with_space(self) -> None:
        env = {"CPPFLAGS": "-I/opt/include"}
        out = append_env(env, "CPPFLAGS", "-DUSE_ORCJIT")
        assert out["CPPFLAGS"] == "-I/opt/include -DUSE_ORCJIT"
        assert env["CPPFLAGS"] == "-I/opt/include"

    def test_missing_key(self) -> None:
        assert append_env({}, "LDFLAGS", "-lfoo") == {"LDFLAGS": "-lfoo"}


def _option_combos(names: list[str]):
    for bits in itertools.product((True, False), repeat=len(names)):
        yield tuple(f"with-{n}" if b else f"without-{n}" for n, b in zip(names, bits))


class TestNoDuplicateKeys:
    """任意选项组合装配出的标志都不含重复键"""

    @pytest.mark.parametrize("bottle", [False, True])
    @pytest.mark.parametrize("head", [False, True])
    def test_julia(self, make_ctx, bottle: bool, head: bool) -> None:
        recipe = get_recipe("julia")
        for combo in _option_combos(["system-libm"]):
            ctx = make_ctx("julia", combo, head=head, bottle=bottle,
                           extra_env={"FC": "/usr/local/bin/gfortran"})
            keys = recipe.configure(ctx).flag_keys()
            assert len(keys) == len(set(keys))

    def test_llvm(self, make_ctx, make_host) -> None:
        recipe = get_recipe("llvm39-julia")
        host = make_host(python_prefix="/usr/local/opt/python@2")
        names = ["libcxx", "toolchain", "lldb", "shared-libs", "libffi", "all-targets"]
        for combo in _option_combos(names):
            ctx = make_ctx("llvm39-julia", combo, host=host)
            keys = recipe.configure(ctx).flag_keys()
            assert len(keys) == len(set(keys)), combo
