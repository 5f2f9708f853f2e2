"""网络工具 - URL 安全校验"""

from __future__ import annotations

from urllib.parse import urlparse

from tapbuild.core.exceptions import ValidationError

_DOWNLOAD_SCHEMES = frozenset(("http", "https"))
_GIT_SCHEMES = frozenset(("http", "https", "git", "ssh", "file"))


def validate_url_scheme(url: str, *, context: str = "", git: bool = False) -> None:
    """校验 URL 协议，防止 file:// 等非预期协议被 urllib 访问

    git=True 时额外允许 git/ssh/file 协议以及本地路径（git 自行处理）。

    Raises:
        ValidationError: URL scheme 不在白名单内
    """
    parsed = urlparse(url)
    allowed = _GIT_SCHEMES if git else _DOWNLOAD_SCHEMES
    if git and not parsed.scheme:
        return
    if parsed.scheme not in allowed:
        label = f" ({context})" if context else ""
        raise ValidationError(
            f"不允许的 URL 协议 '{parsed.scheme}'{label}: {url}"
        )
