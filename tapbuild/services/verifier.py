"""安装验证

运行配方冒烟测试。测试资源目录缺失只告警（提示是否误用/漏用 --HEAD），
命令失败或输出不符才视为验证失败。
"""

from __future__ import annotations

import logging

from tapbuild.core.exceptions import VerifyError
from tapbuild.core.models import SmokeTest, VerifyResult
from tapbuild.utils.shell import CommandExecutor, format_cmd, get_executor

logger = logging.getLogger(__name__)


class Verifier:
    """冒烟测试执行器"""

    def __init__(self, executor: CommandExecutor | None = None) -> None:
        self.executor = executor or get_executor()

    def verify(self, test: SmokeTest, env: dict[str, str] | None = None) -> VerifyResult:
        if test.required_dir is not None and not test.required_dir.exists():
            logger.warning(test.missing_hint or f"测试目录不存在: {test.required_dir}")
            return VerifyResult(status="warning", message=test.missing_hint)

        cmd = list(test.argv)
        logger.info("冒烟测试: %s", format_cmd(cmd))
        r = self.executor.execute(cmd, env=env)
        if not r.success:
            raise VerifyError(
                f"冒烟测试失败 (rc={r.returncode}): {format_cmd(cmd)}",
                returncode=r.returncode, stderr=r.stderr,
            )
        if test.expect_stdout is not None and r.stdout.strip() != test.expect_stdout:
            raise VerifyError(
                f"冒烟测试输出不符: 期望 {test.expect_stdout!r}, 实际 {r.stdout.strip()!r}",
            )
        logger.info("冒烟测试通过")
        return VerifyResult(status="passed")
