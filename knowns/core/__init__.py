"""核心层 - 配置 / 异常 / 数据模型"""
