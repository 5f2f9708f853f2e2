"""构建标志集合

标志以第一个 "=" 之前的文本为键（无 "=" 的标志整体为键）。
同键重复写入时原位替换取值（后写者胜出），保证输出中不存在重复键。
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

logger = logging.getLogger(__name__)


def flag_key(flag: str) -> str:
    """'-DLLVM_ENABLE_RTTI=ON' -> '-DLLVM_ENABLE_RTTI'，'-Wno-dev' -> '-Wno-dev'"""
    return flag.split("=", 1)[0]


class FlagSet:
    """有序、按键去重的标志集合"""

    def __init__(self, flags: Iterable[str] = ()) -> None:
        self._flags: dict[str, str] = {}
        self.extend(flags)

    def add(self, flag: str) -> FlagSet:
        key = flag_key(flag)
        old = self._flags.get(key)
        if old is not None and old != flag:
            logger.debug("标志覆盖: %s -> %s", old, flag)
        self._flags[key] = flag
        return self

    def add_if(self, condition: bool, flag: str) -> FlagSet:
        if condition:
            self.add(flag)
        return self

    def extend(self, flags: Iterable[str]) -> FlagSet:
        for f in flags:
            self.add(f)
        return self

    def discard(self, key: str) -> bool:
        return self._flags.pop(key, None) is not None

    def get(self, key: str) -> str | None:
        """返回键对应的取值部分；无 "=" 的标志返回空串，不存在返回 None"""
        flag = self._flags.get(key)
        if flag is None:
            return None
        return flag.split("=", 1)[1] if "=" in flag else ""

    def to_list(self) -> list[str]:
        return list(self._flags.values())

    def __contains__(self, key: object) -> bool:
        return key in self._flags

    def __iter__(self) -> Iterator[str]:
        return iter(self._flags.values())

    def __len__(self) -> int:
        return len(self._flags)

    def __repr__(self) -> str:
        return f"FlagSet({self.to_list()!r})"


def append_env(env: dict[str, str], key: str, value: str) -> dict[str, str]:
    """返回追加了取值的新环境字典（空格分隔），不修改入参"""
    current = env.get(key, "")
    joined = f"{current} {value}".strip() if current else value.strip()
    return {**env, key: joined}
