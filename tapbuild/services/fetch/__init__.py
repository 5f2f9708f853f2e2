"""源码拉取模块

拆分说明:
- sources.py: Git / 归档包来源适配器
- fetcher.py: 主源码、补丁、资源的拉取协调
"""

from tapbuild.services.fetch.fetcher import SourceFetcher
from tapbuild.services.fetch.sources import ArchiveSource, GitSource

__all__ = ["SourceFetcher", "GitSource", "ArchiveSource"]
