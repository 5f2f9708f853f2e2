"""构建模块

拆分说明:
- staging.py: 依赖库暂存链接与 opt 链接
- executor.py: 外部构建命令执行
"""

from tapbuild.services.build.executor import BuildInvoker
from tapbuild.services.build.staging import link_libraries, link_opt_prefix

__all__ = ["BuildInvoker", "link_libraries", "link_opt_prefix"]
