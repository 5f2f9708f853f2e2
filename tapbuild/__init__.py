"""tapbuild - 源码构建 Julia 与 LLVM 的配方驱动安装工具"""

__version__ = "0.1.0"
