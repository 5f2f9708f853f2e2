"""配方注册表 - 从 YAML 描述文件加载 Formula

职责:
- 扫描内置 tapbuild/formulae 目录与用户 formula_dir（后者覆盖同名配方）
- 将 YAML 字典转换为不可变 Formula
- optional / recommended 依赖自动生成同名选项
- 补丁列表支持 base_url + names 简写
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from tapbuild.core.exceptions import ConfigError, FormulaNotFoundError
from tapbuild.core.models import (
    CompilerFailure,
    Dependency,
    Formula,
    FormulaOption,
    PatchSpec,
    Requirement,
    Resource,
    SourceSpec,
)
from tapbuild.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

BUILTIN_FORMULA_DIR = Path(__file__).resolve().parent.parent / "formulae"

_BUILD_SYSTEMS = frozenset(("make", "cmake"))


class FormulaRegistry:
    """配方注册表"""

    def __init__(self, formula_dir: str = "", *, include_builtin: bool = True) -> None:
        if not formula_dir:
            from tapbuild.core.config import get_config
            formula_dir = get_config().formula_dir
        self.dirs: list[Path] = []
        if include_builtin:
            self.dirs.append(BUILTIN_FORMULA_DIR)
        if formula_dir:
            self.dirs.append(Path(formula_dir))
        self._formulae: dict[str, Formula] | None = None

    def _load_all(self) -> dict[str, Formula]:
        if self._formulae is not None:
            return self._formulae
        formulae: dict[str, Formula] = {}
        for d in self.dirs:
            if not d.is_dir():
                logger.warning("配方目录不存在: %s", d)
                continue
            for path in sorted(d.glob("*.yml")):
                formula = parse_formula(load_yaml(path), source=str(path))
                if formula.name in formulae:
                    logger.info("配方 %s 被 %s 覆盖", formula.name, path)
                formulae[formula.name] = formula
        logger.debug("已加载 %d 个配方", len(formulae))
        self._formulae = formulae
        return formulae

    def get(self, name: str) -> Formula | None:
        return self._load_all().get(name)

    def require(self, name: str) -> Formula:
        formula = self.get(name)
        if formula is None:
            raise FormulaNotFoundError(
                f"配方不存在: {name}。可用: {self.names()}"
            )
        return formula

    def names(self) -> list[str]:
        return sorted(self._load_all())

    def list_all(self) -> list[dict[str, str]]:
        """格式化配方列表用于查询"""
        return [
            {
                "name": f.name,
                "version": f.version(),
                "build_system": f.build_system,
                "desc": f.desc,
            }
            for f in (self._load_all()[n] for n in self.names())
        ]


# =========================================================================
# YAML -> Formula
# =========================================================================


def parse_formula(data: dict[str, Any], source: str = "<memory>") -> Formula:
    """将配方字典转换为 Formula，字段缺失或非法时抛 ConfigError"""
    name = data.get("name")
    if not name:
        raise ConfigError(f"配方缺少 name: {source}")
    stable = data.get("stable") or {}
    if not stable.get("url"):
        raise ConfigError(f"配方 {name} 缺少 stable.url: {source}")
    build_system = data.get("build_system", "make")
    if build_system not in _BUILD_SYSTEMS:
        raise ConfigError(f"配方 {name} 不支持的构建系统: {build_system}")

    deps = tuple(_parse_dependency(d) for d in data.get("dependencies") or [])
    options = _merge_dependency_options(
        [_parse_option(o) for o in data.get("options") or []], deps,
    )

    return Formula(
        name=name,
        desc=data.get("desc", ""),
        homepage=data.get("homepage", ""),
        stable=_parse_source(stable),
        head=_parse_source(data["head"]) if data.get("head") else None,
        revision=int(data.get("revision", 0)),
        build_system=build_system,
        dependencies=deps,
        requirements=tuple(_parse_requirement(r) for r in data.get("requirements") or []),
        options=tuple(options),
        deprecated_options=tuple((data.get("deprecated_options") or {}).items()),
        resources=tuple(
            _parse_resource(rname, r)
            for rname, r in (data.get("resources") or {}).items()
        ),
        patches=tuple(_parse_patches(data.get("patches"))),
        keg_only=data.get("keg_only", ""),
        fails_with=tuple(_parse_failure(f) for f in data.get("fails_with") or []),
    )


def _parse_source(info: dict[str, Any]) -> SourceSpec:
    return SourceSpec(
        url=info["url"],
        tag=str(info.get("tag", "")),
        branch=str(info.get("branch", "")),
        sha256=info.get("sha256", ""),
        shallow=bool(info.get("shallow", True)),
        version=str(info.get("version", "")),
    )


def _parse_dependency(item: str | dict[str, Any]) -> Dependency:
    if isinstance(item, str):
        return Dependency(name=item)
    return Dependency(
        name=item["name"],
        tags=tuple(item.get("tags") or ()),
        when_option=item.get("when_option", ""),
        platforms=tuple(item.get("platforms") or ()),
        min_os=str(item.get("min_os", "")),
    )


def _parse_requirement(item: str | dict[str, Any]) -> Requirement:
    if isinstance(item, str):
        return Requirement(name=item)
    return Requirement(name=item["name"], when_option=item.get("when_option", ""))


def _parse_option(item: dict[str, Any]) -> FormulaOption:
    return FormulaOption(
        name=item["name"],
        description=item.get("description", ""),
        default=bool(item.get("default", False)),
    )


def _merge_dependency_options(
    options: list[FormulaOption], deps: tuple[Dependency, ...],
) -> list[FormulaOption]:
    """optional 依赖生成 with-<name>（默认关），recommended 生成 without-<name>（默认开）"""
    declared = {o.name for o in options}
    for dep in deps:
        if dep.name in declared or not (dep.optional or dep.recommended):
            continue
        if dep.recommended:
            options.append(FormulaOption(dep.name, f"Build without {dep.name} support", True))
        else:
            options.append(FormulaOption(dep.name, f"Build with {dep.name} support", False))
        declared.add(dep.name)
    return options


def _parse_resource(name: str, info: dict[str, Any]) -> Resource:
    if not info.get("stable"):
        raise ConfigError(f"资源 {name} 缺少 stable 来源")
    return Resource(
        name=name,
        destination=info.get("destination", name),
        stable=_parse_source(info["stable"]),
        head=_parse_source(info["head"]) if info.get("head") else None,
    )


def _parse_patches(info: dict[str, Any] | list[Any] | None) -> list[PatchSpec]:
    if not info:
        return []
    if isinstance(info, list):
        return [
            PatchSpec(url=p) if isinstance(p, str)
            else PatchSpec(url=p["url"], strip=int(p.get("strip", 1)), sha256=p.get("sha256", ""))
            for p in info
        ]
    base_url = info["base_url"]
    prefix = info.get("prefix", "")
    suffix = info.get("suffix", ".patch")
    strip = int(info.get("strip", 1))
    return [
        PatchSpec(url=f"{base_url}{prefix}{n}{suffix}", strip=strip)
        for n in info.get("names") or []
    ]


def _parse_failure(item: str | dict[str, Any]) -> CompilerFailure:
    if isinstance(item, str):
        return CompilerFailure(compiler=item)
    return CompilerFailure(compiler=item["compiler"], platform=item.get("platform", ""))
