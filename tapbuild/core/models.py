"""核心数据模型

配方描述（Formula）加载后不可变；构建配置、安装布局、构建上下文
每次运行重新计算，从不持久化。其他模块统一从此处导入。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping

from tapbuild.core.exceptions import ValidationError

# =========================================================================
# 配方描述
# =========================================================================


@dataclass(frozen=True)
class SourceSpec:
    """源码来源 - git 仓库或归档包

    kind 由 url 推断: 以 .git 结尾或 git:// 开头视为 git，其余视为归档。
    shallow=False 时必须拉取完整历史。
    """

    url: str
    tag: str = ""
    branch: str = ""
    sha256: str = ""
    shallow: bool = True
    version: str = ""

    @property
    def kind(self) -> str:
        if self.url.endswith(".git") or self.url.startswith("git://"):
            return "git"
        return "archive"

    @property
    def ref(self) -> str:
        return self.tag or self.branch

    def resolved_version(self) -> str:
        """显式 version 优先，其次由 tag 推断（去掉前缀 v），都没有则为 HEAD"""
        if self.version:
            return self.version
        if self.tag:
            return self.tag[1:] if self.tag.startswith("v") else self.tag
        return "HEAD"


@dataclass(frozen=True)
class Dependency:
    """依赖声明

    tags:
      - build: 仅构建期依赖，不进入运行时闭包
      - optional: 默认不启用，对应 with-<name> 选项
      - recommended: 默认启用，对应 without-<name> 选项
    """

    name: str
    tags: tuple[str, ...] = ()
    when_option: str = ""          # 仅在该选项启用时才需要
    platforms: tuple[str, ...] = ()  # 空表示所有平台
    min_os: str = ""               # 主机系统版本下限

    @property
    def build_only(self) -> bool:
        return "build" in self.tags

    @property
    def optional(self) -> bool:
        return "optional" in self.tags

    @property
    def recommended(self) -> bool:
        return "recommended" in self.tags


@dataclass(frozen=True)
class Requirement:
    """非包形式的环境要求（fortran 编译器、代码签名证书）"""

    name: str
    when_option: str = ""


@dataclass(frozen=True)
class FormulaOption:
    """用户可切换的构建选项，name 不带 with-/without- 前缀"""

    name: str
    description: str = ""
    default: bool = False


@dataclass(frozen=True)
class Resource:
    """附加源码（如 libcxx），在构建阶段解包到 buildpath/<destination>"""

    name: str
    destination: str
    stable: SourceSpec
    head: SourceSpec | None = None

    def source(self, head: bool) -> SourceSpec:
        if head and self.head is not None:
            return self.head
        return self.stable


@dataclass(frozen=True)
class PatchSpec:
    """源码补丁"""

    url: str
    strip: int = 1
    sha256: str = ""


@dataclass(frozen=True)
class CompilerFailure:
    """已知无法构建该配方的编译器"""

    compiler: str
    platform: str = ""

    def matches(self, compiler: str, platform: str) -> bool:
        if self.platform and self.platform != platform:
            return False
        return self.compiler == compiler


@dataclass(frozen=True)
class Formula:
    """配方描述 - 名称、版本、依赖、选项，加载后不可变"""

    name: str
    stable: SourceSpec
    desc: str = ""
    homepage: str = ""
    head: SourceSpec | None = None
    revision: int = 0
    build_system: str = "make"
    dependencies: tuple[Dependency, ...] = ()
    requirements: tuple[Requirement, ...] = ()
    options: tuple[FormulaOption, ...] = ()
    deprecated_options: tuple[tuple[str, str], ...] = ()
    resources: tuple[Resource, ...] = ()
    patches: tuple[PatchSpec, ...] = ()
    keg_only: str = ""
    fails_with: tuple[CompilerFailure, ...] = ()

    def source(self, head: bool = False) -> SourceSpec:
        if head:
            if self.head is None:
                raise ValidationError(f"配方 {self.name} 没有 HEAD 来源")
            return self.head
        return self.stable

    def version(self, head: bool = False) -> str:
        return self.source(head).resolved_version()

    def pkg_version(self, head: bool = False) -> str:
        """带 revision 的安装版本号，如 3.9.1_1"""
        ver = self.version(head)
        if self.revision and not head:
            return f"{ver}_{self.revision}"
        return ver

    def option(self, name: str) -> FormulaOption | None:
        for opt in self.options:
            if opt.name == name:
                return opt
        return None

    def resource(self, name: str) -> Resource:
        for res in self.resources:
            if res.name == name:
                return res
        raise ValidationError(f"配方 {self.name} 未定义资源: {name}")


# =========================================================================
# 构建选项
# =========================================================================


@dataclass(frozen=True)
class BuildOptions:
    """解析后的选项取值（全部选项都有确定的布尔值）"""

    values: tuple[tuple[str, bool], ...] = ()
    explicit: tuple[str, ...] = ()   # 用户显式传入的规范化选项，如 with-system-libm

    @classmethod
    def defaults(cls, formula: Formula) -> BuildOptions:
        return cls(values=tuple((o.name, o.default) for o in formula.options))

    @classmethod
    def parse(cls, formula: Formula, raw: Iterable[str] = ()) -> BuildOptions:
        """解析原始选项（with-X / without-X / 已弃用别名），未知选项报错"""
        values = dict((o.name, o.default) for o in formula.options)
        deprecated = dict(formula.deprecated_options)
        explicit: list[str] = []
        unknown: list[str] = []

        for item in raw:
            flag = item.lstrip("-")
            flag = deprecated.get(flag, flag)
            if flag.startswith("with-"):
                name, enabled = flag[len("with-"):], True
            elif flag.startswith("without-"):
                name, enabled = flag[len("without-"):], False
            else:
                unknown.append(item)
                continue
            if name not in values:
                unknown.append(item)
                continue
            values[name] = enabled
            if flag not in explicit:
                explicit.append(flag)

        if unknown:
            raise ValidationError(
                f"配方 {formula.name} 不支持的选项: {', '.join(unknown)}",
                details=[o.name for o in formula.options],
            )
        return cls(values=tuple(values.items()), explicit=tuple(explicit))

    def with_(self, name: str) -> bool:
        return dict(self.values).get(name, False)

    def without(self, name: str) -> bool:
        return not self.with_(name)

    def as_flags(self) -> list[str]:
        """全部选项的规范化表示，写入安装回执"""
        return [f"with-{k}" if v else f"without-{k}" for k, v in self.values]


# =========================================================================
# 主机信息
# =========================================================================


def version_tuple(version: str) -> tuple[int, ...]:
    """"10.12.6" -> (10, 12, 6)，非数字段截断"""
    parts: list[int] = []
    for piece in version.split("."):
        digits = ""
        for ch in piece:
            if not ch.isdigit():
                break
            digits += ch
        if not digits:
            break
        parts.append(int(digits))
    return tuple(parts)


@dataclass(frozen=True)
class HostFacts:
    """主机信息 - 检测一次，显式传递，不修改进程环境"""

    platform: str                      # darwin | linux
    os_version: str = ""
    compiler: str = "clang"            # clang | gcc | gcc-4.6 ...
    clt_installed: bool = True         # macOS Command Line Tools
    python_prefix: str = ""            # python-config --prefix
    env: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_darwin(self) -> bool:
        return self.platform == "darwin"

    @property
    def shared_lib_suffix(self) -> str:
        return ".dylib" if self.is_darwin else ".so"

    def os_at_least(self, version: str) -> bool:
        if not version:
            return True
        return version_tuple(self.os_version) >= version_tuple(version)


# =========================================================================
# 依赖闭包
# =========================================================================


@dataclass(frozen=True)
class ResolvedDependency:
    """已解析依赖及其 opt 入口"""

    name: str
    build_only: bool
    opt_prefix: Path

    @property
    def opt_lib(self) -> Path:
        return self.opt_prefix / "lib"

    @property
    def opt_bin(self) -> Path:
        return self.opt_prefix / "bin"


@dataclass(frozen=True)
class DependencyClosure:
    """有序依赖集合，构建期依赖与运行时依赖分开保存"""

    build: tuple[ResolvedDependency, ...] = ()
    runtime: tuple[ResolvedDependency, ...] = ()

    @property
    def all(self) -> tuple[ResolvedDependency, ...]:
        return self.build + self.runtime

    def names(self, include_build: bool = True) -> list[str]:
        deps = self.all if include_build else self.runtime
        return [d.name for d in deps]

    def get(self, name: str) -> ResolvedDependency | None:
        for dep in self.all:
            if dep.name == name:
                return dep
        return None


# =========================================================================
# 安装布局与构建上下文
# =========================================================================


@dataclass(frozen=True)
class InstallLayout:
    """安装目录布局: <cellar>/<name>/<version>/{bin,lib,include,share}"""

    name: str
    prefix: Path
    homebrew_prefix: Path

    @property
    def bin(self) -> Path:
        return self.prefix / "bin"

    @property
    def lib(self) -> Path:
        return self.prefix / "lib"

    @property
    def include(self) -> Path:
        return self.prefix / "include"

    @property
    def share(self) -> Path:
        return self.prefix / "share"

    @property
    def pkgshare(self) -> Path:
        return self.share / self.name

    @property
    def opt_prefix(self) -> Path:
        return self.opt_for(self.name)

    @property
    def opt_bin(self) -> Path:
        return self.opt_prefix / "bin"

    @property
    def opt_lib(self) -> Path:
        return self.opt_prefix / "lib"

    @property
    def opt_pkgshare(self) -> Path:
        return self.opt_prefix / "share" / self.name

    def opt_for(self, name: str) -> Path:
        return self.homebrew_prefix / "opt" / name


@dataclass(frozen=True)
class BuildContext:
    """构建上下文 - 配方函数的唯一输入"""

    formula: Formula
    options: BuildOptions
    host: HostFacts
    layout: InstallLayout
    deps: DependencyClosure
    buildpath: Path
    head: bool = False
    bottle: bool = False
    verbose: bool = False
    extra_env: Mapping[str, str] = field(default_factory=dict)

    @property
    def version(self) -> str:
        return self.formula.version(self.head)

    @property
    def env(self) -> dict[str, str]:
        """主机环境快照 + 环境要求注入的变量（如 FC）"""
        return {**self.host.env, **self.extra_env}

    def opt_prefix(self, name: str) -> Path:
        dep = self.deps.get(name)
        if dep is not None:
            return dep.opt_prefix
        return self.layout.opt_for(name)

    def opt_lib(self, name: str) -> Path:
        return self.opt_prefix(name) / "lib"


# =========================================================================
# 构建配置与结果
# =========================================================================


@dataclass(frozen=True)
class BuildConfiguration:
    """一次构建的标志集合 + 显式环境覆盖"""

    flags: tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    goals: tuple[str, ...] = ()

    def flag_keys(self) -> list[str]:
        return [f.split("=", 1)[0] for f in self.flags]


@dataclass(frozen=True)
class BuildCommand:
    """单条外部构建命令"""

    argv: tuple[str, ...]
    cwd: Path
    label: str = "build"


@dataclass(frozen=True)
class SmokeTest:
    """安装后冒烟测试

    required_dir 不存在时只告警；expect_stdout 非空时要求输出完全一致（去除首尾空白）。
    """

    argv: tuple[str, ...]
    required_dir: Path | None = None
    missing_hint: str = ""
    expect_stdout: str | None = None


@dataclass
class BuildResult:
    """构建结果"""

    prefix: Path
    duration: float = 0.0
    commands: list[str] = field(default_factory=list)


@dataclass
class SourceTree:
    """拉取后的源码工作目录"""

    path: Path
    version: str
    commit: str = ""
    url: str = ""
    ref: str = ""


@dataclass
class VerifyResult:
    """验证结果: passed | warning | failed"""

    status: str
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status in ("passed", "warning")
