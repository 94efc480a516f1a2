"""pkgadd - 软件包安装事务引擎

从本地归档安装软件包：递归补齐依赖、释放文件（保留配置文件修改）、
按固定顺序执行生命周期脚本与 @exec 指令，最后登记到包数据库。
"""

__version__ = "0.1.0"
