"""环境要求检查

配方除了包依赖，还可能要求:
- fortran: 可用的 Fortran 编译器（$FC 或 PATH 上的 gfortran），满足后注入 FC
- codesign: 可用的 lldb_codesign 代码签名证书（构建 LLDB 时需要）

另外检查主机编译器是否在配方的 fails_with 列表中。
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path

from tapbuild.core.exceptions import DependencyError, ValidationError
from tapbuild.core.models import BuildOptions, Formula, HostFacts, Requirement
from tapbuild.utils.shell import CommandExecutor, get_executor

logger = logging.getLogger(__name__)

CODESIGN_IDENTITY = "lldb_codesign"


def check_compiler(formula: Formula, host: HostFacts) -> None:
    """主机编译器已知无法构建该配方时抛 ValidationError"""
    for failure in formula.fails_with:
        if failure.matches(host.compiler, host.platform):
            raise ValidationError(
                f"{formula.name} 无法使用编译器 {host.compiler} 构建"
                "（需要 GCC 4.7+ 或 clang）"
            )


class RequirementChecker:
    """环境要求检查器"""

    def __init__(self, executor: CommandExecutor | None = None) -> None:
        self.executor = executor or get_executor()

    def check_all(
        self, formula: Formula, options: BuildOptions, host: HostFacts,
    ) -> dict[str, str]:
        """检查所有生效的要求，返回需要注入构建环境的变量"""
        env: dict[str, str] = {}
        for req in formula.requirements:
            if req.when_option and not options.with_(req.when_option):
                continue
            env.update(self.check(req, host))
        return env

    def check(self, req: Requirement, host: HostFacts) -> dict[str, str]:
        if req.name == "fortran":
            return self._fortran(host)
        if req.name == "codesign":
            self._codesign(host)
            return {}
        raise ValidationError(f"未知的环境要求: {req.name}")

    @staticmethod
    def _fortran(host: HostFacts) -> dict[str, str]:
        fc = host.env.get("FC", "")
        if fc:
            return {"FC": fc}
        found = shutil.which("gfortran", path=host.env.get("PATH"))
        if found is None:
            raise DependencyError(
                "需要 Fortran 编译器: 请安装 gfortran 或设置 FC",
                missing=["fortran"],
            )
        logger.info("Fortran 编译器: %s", found)
        return {"FC": found}

    def _codesign(self, host: HostFacts) -> None:
        """用 codesign --dryrun 对临时可执行文件试签名"""
        with tempfile.TemporaryDirectory() as tmp:
            probe = Path(tmp) / "llvm_check"
            shutil.copy("/usr/bin/false", probe)
            r = self.executor.execute(
                ["/usr/bin/codesign", "-f", "-s", CODESIGN_IDENTITY,
                 "--dryrun", str(probe)],
                cwd=tmp, env=dict(host.env),
            )
        if not r.success:
            raise DependencyError(
                f"构建 LLDB 需要可用的 {CODESIGN_IDENTITY} 签名证书。\n"
                "参见: https://llvm.org/svn/llvm-project/lldb/trunk/docs/code-signing.txt",
                missing=["codesign"],
            )
