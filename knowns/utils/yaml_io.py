"""YAML / JSON 文件统一读写工具

集中管理配置与元数据文件的序列化/反序列化，避免各模块重复实现。
统一 encoding="utf-8"、空值保护、目录自动创建、原子写入。
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# 文件最大大小限制 (10MB)，防止异常大文件导致内存耗尽
MAX_FILE_SIZE = 10 * 1024 * 1024


def atomic_write(path: Path, content: str) -> None:
    """原子写入：同目录临时文件 + os.replace

    临时文件以 "." 开头，写入过程中不会被模板 / 文档列表扫描到。
    失败时删除临时文件并重新抛出原异常。
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def _check_size(p: Path) -> None:
    file_size = p.stat().st_size
    if file_size > MAX_FILE_SIZE:
        raise ValueError(
            f"文件过大: {p} ({file_size} 字节), "
            f"超过限制 {MAX_FILE_SIZE} 字节"
        )


def load_yaml(path: str | Path) -> dict[str, Any]:
    """安全读取 YAML 文件

    返回:
        dict: 解析后的字典。如果文件不存在、为空、或内容不是字典类型，返回空字典

    异常:
        yaml.YAMLError: YAML 格式错误
        ValueError: 文件过大（超过 MAX_FILE_SIZE）
    """
    p = Path(path)
    if not p.exists():
        return {}

    _check_size(p)

    try:
        with open(p, encoding="utf-8") as f:
            result = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error("解析 YAML 文件失败: %s, 错误: %s", path, e)
        raise

    if result is None:
        return {}
    if not isinstance(result, dict):
        logger.warning(
            "%s 内容不是字典类型 (实际类型: %s)，返回空字典",
            path, type(result).__name__,
        )
        return {}
    return result


def load_json(path: str | Path) -> dict[str, Any] | None:
    """读取 JSON 对象文件

    文件不存在返回 None；内容损坏或不是对象时记录警告并返回 None，
    由调用方按"无记录"处理。
    """
    p = Path(path)
    if not p.is_file():
        return None
    try:
        _check_size(p)
        with open(p, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("读取 JSON 文件失败，按空处理: %s (%s)", path, e)
        return None
    if not isinstance(data, dict):
        logger.warning("%s 内容不是 JSON 对象，按空处理", path)
        return None
    return data


def save_json(path: str | Path, data: Any) -> None:
    """原子写入 JSON 文件（2 空格缩进，末尾换行）"""
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    atomic_write(Path(path), content)
