"""导入服务：导入 / 同步 / 移除 / 列出外部 .knowns 内容

流程（import_source）:
  推断类型 -> 生成 / 校验名称 -> Provider 校验 -> 获取到暂存目录
  -> 校验 .knowns/ -> 三方比较复制（或 dry-run 仅列出） -> 写元数据与配置
  -> 清理暂存目录

用法:
    svc = ImportService(project_root=".")
    result = svc.import_source("https://github.com/org/templates.git")
    svc.sync_all_imports()
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from knowns.core.exceptions import ImportErrorCode, ImportSourceError
from knowns.core.models import (
    SYMLINK_MARKER,
    FetchOptions,
    FileAction,
    FileChange,
    ImportConfig,
    ImportKind,
    ImportMetadata,
    ImportOptions,
    ImportResult,
    SyncOptions,
)
from knowns.services.imports.providers import LocalProvider, ProviderRegistry
from knowns.services.imports.store import ImportStore
from knowns.services.imports.sync import copy_files, list_files, prune_files
from knowns.services.imports.validator import (
    CONTENT_DIRS,
    KNOWNS_DIR,
    assert_valid_knowns_dir,
    detect_import_kind,
    generate_import_name,
    validate_import_name,
    validate_knowns_dir,
)
from knowns.utils.logger import import_context

if TYPE_CHECKING:
    from knowns.core.config import Config
    from knowns.core.models import ValidationResult

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _validation_error(validation: ValidationResult) -> ImportSourceError:
    """Provider 校验失败 -> 异常，保留 Provider 给出的错误分类"""
    try:
        code = ImportErrorCode(validation.code) if validation.code else ImportErrorCode.INVALID_SOURCE
    except ValueError:
        code = ImportErrorCode.INVALID_SOURCE
    return ImportSourceError(validation.error or "无效的来源", code, validation.hint)


class ImportService:
    """项目级导入管理"""

    def __init__(
        self,
        project_root: str | Path = "",
        config: Config | None = None,
        providers: ProviderRegistry | None = None,
    ) -> None:
        if config is None:
            from knowns.core.config import get_config
            config = get_config()
        self.config = config
        self.project_root = Path(project_root or config.project_root).resolve()
        self.store = ImportStore(self.project_root, config.knowns_dir)
        self.providers = providers or ProviderRegistry(config=config)

    # =====================================================================
    # 导入
    # =====================================================================

    def import_source(self, source: str, options: ImportOptions | None = None) -> ImportResult:
        """导入外部来源

        异常:
            ImportSourceError: 类型无法判断、名称非法 / 冲突、来源无效、
                获取失败或来源中没有可导入的内容
        """
        options = options or ImportOptions()

        try:
            kind = ImportKind(options.kind) if options.kind else detect_import_kind(source)
        except ValueError:
            raise ImportSourceError(
                f"未知的导入类型: {options.kind}",
                ImportErrorCode.INVALID_SOURCE,
                "使用 --type git|npm|local 指定类型",
            ) from None
        if kind is None:
            raise ImportSourceError(
                f"无法判断导入类型: {source}",
                ImportErrorCode.INVALID_SOURCE,
                "使用 --type git|npm|local 指定类型",
            )

        if kind == ImportKind.LOCAL:
            source = self._anchor_local_source(source)

        name = options.name or generate_import_name(source, kind)
        name_error = validate_import_name(name)
        if name_error:
            raise ImportSourceError(name_error, ImportErrorCode.NAME_CONFLICT)
        if not options.force and not options.is_sync and self.store.import_exists(name):
            raise ImportSourceError(
                f"导入已存在: {name}",
                ImportErrorCode.NAME_CONFLICT,
                "使用 --force 覆盖，或用 --name 指定其他名称",
            )
        if options.link and kind != ImportKind.LOCAL:
            raise ImportSourceError(
                "--link 仅支持本地路径导入", ImportErrorCode.INVALID_SOURCE,
            )

        provider = self.providers.get(kind)
        fetch_options = FetchOptions(
            ref=options.ref, version=options.version,
            include=options.include, exclude=options.exclude,
            link=options.link,
        )

        validation = provider.validate(source, fetch_options)
        if not validation.valid:
            raise _validation_error(validation)

        if options.link:
            return self._import_linked(source, name, provider, fetch_options, options)

        staging = provider.fetch(source, fetch_options)
        try:
            return self._import_from_staging(
                source, name, kind, provider, staging, fetch_options, options,
            )
        finally:
            provider.cleanup(staging)

    def _anchor_local_source(self, source: str) -> str:
        """本地相对路径按项目根目录解析，保存的来源与当前工作目录无关"""
        path = Path(source).expanduser()
        if path.is_absolute():
            return source
        return str((self.project_root / path).resolve())

    def _import_from_staging(
        self,
        source: str,
        name: str,
        kind: ImportKind,
        provider: Any,
        staging: Path,
        fetch_options: FetchOptions,
        options: ImportOptions,
    ) -> ImportResult:
        assert_valid_knowns_dir(validate_knowns_dir(staging))
        content_root = staging / KNOWNS_DIR
        subtrees = [d for d in CONTENT_DIRS if (content_root / d).is_dir()]
        if not subtrees:
            raise ImportSourceError(
                "来源的 .knowns/ 中没有 templates 或 docs", ImportErrorCode.EMPTY_IMPORT,
            )

        files_by_subtree = {
            d: list_files(content_root / d, options.include, options.exclude)
            for d in subtrees
        }

        if options.dry_run:
            changes = [
                FileChange(f"{d}/{rel}", FileAction.ADD)
                for d in subtrees for rel in files_by_subtree[d]
            ]
            logger.info(
                "dry-run: %s 将导入 %d 个文件", name, len(changes),
                extra=import_context(name, kind),
            )
            return ImportResult(True, name, source, kind, changes)

        target_dir = self.store.import_dir(name)
        previous = self.store.read_metadata(name)
        baseline = (previous.file_hashes if previous else None) or {}

        if self.store.is_linked(name):
            # 由软链接导入切换为复制导入，不能写入链接目标
            target_dir.unlink()
            self.store.link_metadata_path(name).unlink(missing_ok=True)

        all_changes: list[FileChange] = []
        all_hashes: dict[str, str] = {}
        for d in subtrees:
            prefix = f"{d}/"
            sub_baseline = {
                k[len(prefix):]: v for k, v in baseline.items() if k.startswith(prefix)
            }
            changes, hashes = copy_files(
                content_root / d, target_dir / d, files_by_subtree[d], sub_baseline,
                force=options.force, hash_length=self.config.hash_length,
            )
            all_changes += [FileChange(prefix + c.path, c.action, c.skip_reason) for c in changes]
            all_hashes.update({prefix + k: v for k, v in hashes.items()})

        processed = [c.path for c in all_changes]

        if options.prune and previous:
            current = set(processed)
            stale = [f for f in previous.files if f != SYMLINK_MARKER and f not in current]
            pruned = prune_files(
                target_dir, stale, baseline,
                force=options.force, hash_length=self.config.hash_length,
            )
            for change in pruned:
                if change.action == FileAction.SKIP:
                    # 保留的本地修改文件仍归属本导入
                    processed.append(change.path)
                    if change.path in baseline:
                        all_hashes[change.path] = baseline[change.path]
            all_changes += pruned

        provider_meta = provider.get_metadata(staging, fetch_options)
        now = _now()
        metadata = ImportMetadata(
            name=name,
            source=source,
            kind=kind,
            imported_at=previous.imported_at if previous and previous.imported_at else now,
            last_sync=now,
            ref=options.ref or provider_meta.get("ref"),
            commit=provider_meta.get("commit"),
            version=provider_meta.get("version"),
            files=processed,
            file_hashes=all_hashes,
        )
        self.store.write_metadata(metadata)

        if not options.no_save:
            self.store.save_import_config(ImportConfig(
                name=name, source=source, kind=kind,
                ref=options.ref, version=options.version,
                include=options.include, exclude=options.exclude,
                auto_sync=options.auto_sync,
            ))

        result = ImportResult(True, name, source, kind, all_changes, metadata=metadata)
        logger.info(
            "导入完成: %s (新增 %d, 更新 %d, 删除 %d, 跳过 %d, 冲突 %d)",
            name,
            result.count(FileAction.ADD), result.count(FileAction.UPDATE),
            result.count(FileAction.DELETE), result.count(FileAction.SKIP),
            len(result.conflicts),
            extra=import_context(name, kind),
        )
        return result

    def _import_linked(
        self,
        source: str,
        name: str,
        provider: Any,
        fetch_options: FetchOptions,
        options: ImportOptions,
    ) -> ImportResult:
        """软链接导入：不复制文件，元数据写在旁路文件"""
        if options.dry_run:
            return ImportResult(True, name, source, ImportKind.LOCAL, [FileChange(".", FileAction.ADD)])

        previous = self.store.read_metadata(name)
        knowns_path = provider.fetch(source, fetch_options)
        LocalProvider.create_symlink(knowns_path, self.store.import_dir(name))

        now = _now()
        metadata = ImportMetadata(
            name=name,
            source=source,
            kind=ImportKind.LOCAL,
            imported_at=previous.imported_at if previous and previous.imported_at else now,
            last_sync=now,
            files=[SYMLINK_MARKER],
        )
        self.store.write_metadata(metadata, linked=True)

        if not options.no_save:
            self.store.save_import_config(ImportConfig(
                name=name, source=source, kind=ImportKind.LOCAL,
                auto_sync=options.auto_sync, link=True,
            ))

        logger.info(
            "软链接导入完成: %s -> %s", name, knowns_path,
            extra=import_context(name, ImportKind.LOCAL),
        )
        return ImportResult(
            True, name, source, ImportKind.LOCAL,
            [FileChange(".", FileAction.ADD)], metadata=metadata,
        )

    # =====================================================================
    # 同步
    # =====================================================================

    def sync_import(self, name: str, options: SyncOptions | None = None) -> ImportResult:
        """按已保存的配置重新导入，不改写配置"""
        options = options or SyncOptions()
        config = self.store.get_import_config(name)
        if config is None:
            raise ImportSourceError(
                f"导入不存在: {name}",
                ImportErrorCode.SOURCE_NOT_FOUND,
                "执行 'knowns import list' 查看已配置的导入",
            )

        if config.link:
            # 软链接内容始终与来源一致
            return ImportResult(True, name, config.source, config.kind, [])

        return self.import_source(config.source, ImportOptions(
            name=name,
            kind=config.kind,
            ref=config.ref,
            version=config.version,
            include=config.include,
            exclude=config.exclude,
            force=options.force,
            prune=options.prune,
            dry_run=options.dry_run,
            no_save=True,
            is_sync=True,
        ))

    def sync_all_imports(self, options: SyncOptions | None = None) -> list[ImportResult]:
        """按配置顺序逐个同步，单个失败不中断批次

        autoSync 显式为 false 的导入仅在 force 时同步。
        """
        options = options or SyncOptions()
        results: list[ImportResult] = []
        for config in self.store.get_import_configs():
            if config.auto_sync is False and not options.force:
                logger.debug("跳过未开启自动同步的导入: %s", config.name)
                continue
            try:
                results.append(self.sync_import(config.name, options))
            except ImportSourceError as e:
                logger.warning(
                    "同步失败: %s (%s) %s", config.name, e.code, e,
                    extra=import_context(config.name, config.kind, e.code),
                )
                results.append(ImportResult(
                    False, config.name, config.source, config.kind, error=str(e),
                ))
            except Exception as e:
                # 文件系统等非导入错误同样只影响当前导入
                logger.warning(
                    "同步失败: %s %s: %s", config.name, type(e).__name__, e,
                    extra=import_context(config.name, config.kind),
                    exc_info=True,
                )
                results.append(ImportResult(
                    False, config.name, config.source, config.kind, error=str(e),
                ))
        return results

    # =====================================================================
    # 移除 / 查询
    # =====================================================================

    def remove_import(self, name: str, delete_files: bool = False) -> dict[str, Any]:
        if not self.store.import_exists(name):
            raise ImportSourceError(f"导入不存在: {name}", ImportErrorCode.SOURCE_NOT_FOUND)

        self.store.remove_import_config(name)

        if delete_files:
            target = self.store.import_dir(name)
            if target.is_symlink():
                target.unlink()
            elif target.exists():
                shutil.rmtree(target)
            sidecar = self.store.link_metadata_path(name)
            if sidecar.exists():
                sidecar.unlink()

        logger.info(
            "导入已移除: %s (删除文件=%s)", name, delete_files,
            extra=import_context(name),
        )
        return {"success": True, "deleted": delete_files}

    def list_imports(self) -> list[dict[str, Any]]:
        return [
            {"config": cfg, "metadata": meta}
            for cfg, meta in self.store.list_with_metadata()
        ]

    def get_import(self, name: str) -> dict[str, Any] | None:
        for item in self.list_imports():
            if item["config"].name == name:
                return item
        return None
