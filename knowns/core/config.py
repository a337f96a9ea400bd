"""集中配置管理

替代各模块散落的常量（超时、临时目录前缀、哈希长度等），提供统一的配置入口。
支持从 YAML 文件加载 + 编程式覆盖。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import yaml

from knowns.core.exceptions import ConfigError
from knowns.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """全局配置"""

    # 目录
    project_root: str = "."
    knowns_dir: str = ".knowns"

    # 暂存目录
    staging_prefix: str = "knowns-import-"

    # 冲突检测：sha256 摘要保留的十六进制位数
    hash_length: int = 16

    # 外部命令超时（秒）
    validate_timeout: int = 30
    fetch_timeout: int = 120

    # sparse checkout 所需的最低 git 版本
    sparse_min_git: str = "2.25"

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = "configs/knowns.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        try:
            data = load_yaml(path)
        except (ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"配置文件无效: {path} ({e})") from e
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        try:
            cfg = cls(**matched)
        except TypeError as e:
            raise ConfigError(f"配置项无效: {path} ({e})") from e
        cfg.extra = extra
        return cfg

    @property
    def sparse_min_version(self) -> tuple[int, int]:
        major, _, minor = self.sparse_min_git.partition(".")
        return int(major), int(minor or 0)

    def to_dict(self) -> dict:
        from dataclasses import asdict
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI / Web 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "configs/knowns.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
