"""本地路径来源（复制或软链接）

来源既可以是项目根目录，也可以直接是其 .knowns/ 目录。
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from knowns.core.exceptions import ImportErrorCode, ImportSourceError
from knowns.core.models import FetchOptions, ImportKind, ValidationResult
from knowns.services.imports.providers.base import ImportProvider
from knowns.services.imports.validator import (
    KNOWNS_DIR,
    assert_valid_knowns_dir,
    validate_knowns_dir,
)

logger = logging.getLogger(__name__)


def resolve_path(source: str) -> Path:
    """展开 ~ 并转为绝对路径"""
    return Path(source).expanduser().resolve()


def knowns_path_of(resolved: Path) -> Path:
    """来源对应的 .knowns/ 路径"""
    if resolved.name == KNOWNS_DIR:
        return resolved
    return resolved / KNOWNS_DIR


class LocalProvider(ImportProvider):
    """本地路径来源"""

    kind = ImportKind.LOCAL

    def validate(self, source: str, options: FetchOptions) -> ValidationResult:
        resolved = resolve_path(source)

        if not resolved.exists():
            return ValidationResult(
                valid=False, error=f"路径不存在: {source}",
                hint="检查路径后重试",
                code=str(ImportErrorCode.SOURCE_NOT_FOUND),
            )
        if not resolved.is_dir():
            return ValidationResult(valid=False, error=f"路径不是目录: {source}")

        knowns = knowns_path_of(resolved)
        if not knowns.is_dir():
            return ValidationResult(
                valid=False,
                error="来源中不包含 .knowns/ 目录",
                hint="只能导入启用了 Knowns 的项目",
                code=str(ImportErrorCode.NO_KNOWNS_DIR),
            )

        result = validate_knowns_dir(knowns.parent)
        if result.valid:
            result.kind = ImportKind.LOCAL
        return result

    def fetch(self, source: str, options: FetchOptions) -> Path:
        """link 模式直接返回来源的 .knowns/ 路径（由调用方创建软链接），
        复制模式把 .knowns/ 复制到暂存目录"""
        resolved = resolve_path(source)
        if not resolved.exists():
            raise ImportSourceError(f"路径不存在: {source}", ImportErrorCode.SOURCE_NOT_FOUND)

        knowns = knowns_path_of(resolved)
        assert_valid_knowns_dir(validate_knowns_dir(knowns.parent))

        if options.link:
            return knowns

        staging = self.make_staging_dir()
        try:
            shutil.copytree(
                knowns, staging / KNOWNS_DIR,
                ignore=shutil.ignore_patterns(".git"),
            )
        except (OSError, shutil.Error) as e:
            self.cleanup(staging)
            raise ImportSourceError(
                f"复制失败: {e}", ImportErrorCode.SOURCE_NOT_FOUND,
            ) from e
        logger.info("本地来源就绪: %s -> %s", resolved, staging)
        return staging

    def get_metadata(self, staging_dir: Path, options: FetchOptions) -> dict[str, str]:
        return {}

    @staticmethod
    def create_symlink(knowns_path: str | Path, target: Path) -> None:
        """创建软链接 target -> knowns_path，已存在的 target 先删除"""
        if target.is_symlink() or target.is_file():
            target.unlink()
        elif target.exists():
            shutil.rmtree(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.symlink_to(Path(knowns_path), target_is_directory=True)
        logger.info("软链接已创建: %s -> %s", target, knowns_path)
