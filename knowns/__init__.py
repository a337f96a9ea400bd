"""knowns 导入与解析子系统"""

__version__ = "0.4.0"
