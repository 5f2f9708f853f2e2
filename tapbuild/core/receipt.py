"""安装回执

每次安装在前缀下写入 INSTALL_RECEIPT.yml，记录版本、来源、所用选项；
下游配方据此判断依赖是如何构建的（如 arpack 是否 without-openblas）。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from tapbuild.utils.yaml_io import load_yaml, save_yaml

if TYPE_CHECKING:
    from tapbuild.core.models import BuildContext, SourceTree

logger = logging.getLogger(__name__)

RECEIPT_FILE = "INSTALL_RECEIPT.yml"


@dataclass
class Receipt:
    """安装回执"""

    formula: str
    version: str
    head: bool = False
    bottle: bool = False
    used_options: list[str] = field(default_factory=list)
    source_url: str = ""
    source_ref: str = ""
    source_commit: str = ""
    runtime_dependencies: list[str] = field(default_factory=list)
    installed_at: str = ""

    def built_without(self, option: str) -> bool:
        """仅当回执明确记录 without-<option> 时为真"""
        return f"without-{option}" in self.used_options

    @classmethod
    def from_context(cls, ctx: BuildContext, tree: SourceTree | None = None) -> Receipt:
        return cls(
            formula=ctx.formula.name,
            version=ctx.formula.pkg_version(ctx.head),
            head=ctx.head,
            bottle=ctx.bottle,
            used_options=ctx.options.as_flags(),
            source_url=tree.url if tree else "",
            source_ref=tree.ref if tree else "",
            source_commit=tree.commit if tree else "",
            runtime_dependencies=ctx.deps.names(include_build=False),
            installed_at=datetime.now(timezone.utc).isoformat(),
        )


class ReceiptStore:
    """回执读写"""

    def __init__(self, homebrew_prefix: Path) -> None:
        self.homebrew_prefix = Path(homebrew_prefix)

    def write(self, prefix: Path, receipt: Receipt) -> Path:
        path = Path(prefix) / RECEIPT_FILE
        save_yaml(path, asdict(receipt))
        logger.info("安装回执已写入: %s", path)
        return path

    def load(self, name: str) -> Receipt | None:
        """读取 opt/<name>/INSTALL_RECEIPT.yml，不存在返回 None"""
        return self.load_path(self.homebrew_prefix / "opt" / name / RECEIPT_FILE)

    @staticmethod
    def load_path(path: Path) -> Receipt | None:
        data = load_yaml(path)
        if not data or "formula" not in data:
            return None
        data.setdefault("version", "")
        known = set(Receipt.__dataclass_fields__)
        return Receipt(**{k: v for k, v in data.items() if k in known})
