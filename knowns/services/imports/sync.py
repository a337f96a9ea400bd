"""文件同步与冲突检测

职责：
- 计算文件内容哈希
- 按 include / exclude 模式列出子目录下的文件
- 三方比较（来源哈希 / 基线哈希 / 当前目标哈希）决定每个文件的动作
- 执行复制、记录变更与新的基线哈希
- prune: 删除来源中已不存在的文件
"""

from __future__ import annotations

import fnmatch
import hashlib
import logging
import shutil
from enum import Enum
from pathlib import Path

from knowns.core.models import (
    SKIP_LOCAL_MODIFIED,
    SKIP_NO_CHANGES,
    FileAction,
    FileChange,
)

logger = logging.getLogger(__name__)

DEFAULT_HASH_LENGTH = 16
IGNORED_NAMES = frozenset((".git", ".import.json"))


class PlannedAction(str, Enum):
    """单个文件的同步决策"""

    ADD = "add"
    UPDATE = "update"
    SKIP_UNCHANGED = "skip-unchanged"
    SKIP_CONFLICT = "skip-conflict"


def plan_file_action(
    source_hash: str,
    baseline_hash: str | None,
    target_hash: str | None,
    *,
    force: bool = False,
) -> PlannedAction:
    """三方比较决定文件动作

    参数:
        source_hash: 来源文件哈希
        baseline_hash: 上次同步记录的哈希（无记录为 None）
        target_hash: 本地目标文件当前哈希（文件不存在为 None）
        force: 覆盖本地修改

    判断顺序: 目标不存在 -> 内容一致 -> 本地修改 -> 覆盖。
    """
    if target_hash is None:
        return PlannedAction.ADD
    if target_hash == source_hash:
        return PlannedAction.SKIP_UNCHANGED
    if baseline_hash is not None and baseline_hash != target_hash and not force:
        return PlannedAction.SKIP_CONFLICT
    return PlannedAction.UPDATE


def hash_file(path: str | Path, length: int = DEFAULT_HASH_LENGTH) -> str:
    """sha256 摘要的前 length 位"""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            h.update(chunk)
    return h.hexdigest()[:length]


def matches_any(rel_path: str, patterns: list[str]) -> bool:
    """相对路径是否匹配任一 glob 模式（匹配完整路径或文件名）"""
    name = rel_path.rsplit("/", 1)[-1]
    for pattern in patterns:
        if fnmatch.fnmatch(rel_path, pattern) or fnmatch.fnmatch(name, pattern):
            return True
        if pattern.startswith("**/") and fnmatch.fnmatch(rel_path, pattern[3:]):
            return True
    return False


def list_files(
    directory: str | Path,
    include: list[str] | None = None,
    exclude: list[str] | None = None,
) -> list[str]:
    """递归列出目录下的文件（posix 相对路径，已排序）"""
    root = Path(directory)
    if not root.is_dir():
        return []

    files: list[str] = []
    for path in root.rglob("*"):
        rel = path.relative_to(root)
        if any(part in IGNORED_NAMES for part in rel.parts):
            continue
        if not path.is_file():
            continue
        rel_path = rel.as_posix()
        if include and not matches_any(rel_path, include):
            continue
        if exclude and matches_any(rel_path, exclude):
            continue
        files.append(rel_path)
    return sorted(files)


def copy_files(
    source_dir: Path,
    target_dir: Path,
    files: list[str],
    baseline_hashes: dict[str, str] | None = None,
    *,
    force: bool = False,
    hash_length: int = DEFAULT_HASH_LENGTH,
) -> tuple[list[FileChange], dict[str, str]]:
    """按决策复制文件

    返回 (变更列表, 新基线哈希)。本地修改被跳过的文件沿用旧基线，
    使后续同步仍能检测到该修改。
    """
    baseline_hashes = baseline_hashes or {}
    changes: list[FileChange] = []
    hashes: dict[str, str] = {}

    for rel_path in files:
        source_path = source_dir / rel_path
        target_path = target_dir / rel_path
        if not source_path.is_file():
            continue

        source_hash = hash_file(source_path, hash_length)
        target_hash = hash_file(target_path, hash_length) if target_path.is_file() else None
        action = plan_file_action(
            source_hash, baseline_hashes.get(rel_path), target_hash, force=force,
        )

        if action == PlannedAction.SKIP_CONFLICT:
            changes.append(FileChange(rel_path, FileAction.SKIP, SKIP_LOCAL_MODIFIED))
            hashes[rel_path] = baseline_hashes[rel_path]
            logger.info("  跳过（本地已修改）: %s", rel_path)
            continue

        hashes[rel_path] = source_hash
        if action == PlannedAction.SKIP_UNCHANGED:
            changes.append(FileChange(rel_path, FileAction.SKIP, SKIP_NO_CHANGES))
            continue

        target_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source_path, target_path)
        changes.append(FileChange(
            rel_path, FileAction.ADD if action == PlannedAction.ADD else FileAction.UPDATE,
        ))

    return changes, hashes


def prune_files(
    target_dir: Path,
    stale: list[str],
    baseline_hashes: dict[str, str] | None = None,
    *,
    force: bool = False,
    hash_length: int = DEFAULT_HASH_LENGTH,
) -> list[FileChange]:
    """删除来源中已不存在的文件；本地修改过的文件除非 force 否则保留"""
    baseline_hashes = baseline_hashes or {}
    changes: list[FileChange] = []
    for rel_path in stale:
        target_path = target_dir / rel_path
        if not target_path.is_file():
            continue
        baseline = baseline_hashes.get(rel_path)
        if not force and baseline != hash_file(target_path, hash_length):
            changes.append(FileChange(rel_path, FileAction.SKIP, SKIP_LOCAL_MODIFIED))
            continue
        target_path.unlink()
        changes.append(FileChange(rel_path, FileAction.DELETE))
    return changes
