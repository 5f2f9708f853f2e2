"""统一异常体系

所有业务异常继承 TapBuildError，对应安装流水线的五类失败:
拉取 (FetchError)、依赖 (DependencyError)、构建 (BuildError)、
补丁 (PatchError)、验证 (VerifyError)。

CLI 层捕获 TapBuildError，输出 message 与外部工具原始 stderr，
并以 returncode 作为进程退出码。
"""

from __future__ import annotations


class TapBuildError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str, *, returncode: int = 1) -> None:
        super().__init__(message)
        self.returncode = returncode


class ConfigError(TapBuildError):
    """配置文件或配方描述缺失、内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(TapBuildError):
    """输入数据校验失败（未知选项、不支持的编译器等）"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class FormulaNotFoundError(TapBuildError):
    """指定的配方不存在"""

    code = "FORMULA_NOT_FOUND"


class FetchError(TapBuildError):
    """源码拉取失败（网络 / VCS / 校验和 / 补丁）"""

    code = "FETCH_ERROR"

    def __init__(self, message: str, *, returncode: int = 1, stderr: str = "") -> None:
        super().__init__(message, returncode=returncode)
        self.stderr = stderr


class DependencyError(TapBuildError):
    """外部依赖缺失或环境要求不满足"""

    code = "DEPENDENCY_ERROR"

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing = missing or []


class BuildError(TapBuildError):
    """外部构建工具返回非零，stderr 原样保留"""

    code = "BUILD_ERROR"

    def __init__(self, message: str, *, returncode: int = 1, stderr: str = "") -> None:
        super().__init__(message, returncode=returncode)
        self.stderr = stderr


class PatchError(TapBuildError):
    """安装后修补（rpath / 权限）失败"""

    code = "PATCH_ERROR"

    def __init__(self, message: str, *, returncode: int = 1, stderr: str = "") -> None:
        super().__init__(message, returncode=returncode)
        self.stderr = stderr


class VerifyError(TapBuildError):
    """冒烟测试失败"""

    code = "VERIFY_ERROR"

    def __init__(self, message: str, *, returncode: int = 1, stderr: str = "") -> None:
        super().__init__(message, returncode=returncode)
        self.stderr = stderr
