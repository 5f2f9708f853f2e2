"""服务层

- fetch: 源码 / 资源 / 补丁拉取
- build: 构建命令执行与软链接
- patcher: 安装后 rpath 与权限修补
- verifier: 冒烟测试
- caveats: 安装注意事项
- container: 服务容器
"""
