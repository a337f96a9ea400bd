"""核心数据模型

导入子系统的所有数据类集中定义于此：导入配置、导入元数据、
文件变更、操作结果、校验结果以及解析结果。

持久化字段使用 camelCase（与 .knowns/config.json 的既有格式保持一致），
Python 侧属性统一使用 snake_case，转换集中在 to_dict / from_dict。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ImportKind(str, Enum):
    """导入来源类型"""

    GIT = "git"          # 版本库
    NPM = "npm"          # 语言包仓库
    LOCAL = "local"      # 本地路径
    CATALOG = "catalog"  # knowns:// 目录（暂未提供实现）

    def __str__(self) -> str:
        return self.value


class FileAction(str, Enum):
    """单个文件在同步中的处理结果"""

    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"
    SKIP = "skip"

    def __str__(self) -> str:
        return self.value


# 跳过原因
SKIP_NO_CHANGES = "No changes"
SKIP_LOCAL_MODIFIED = "Local modifications detected"

# 软链接导入的占位文件列表
SYMLINK_MARKER = "(symlinked)"


def _drop_empty(data: dict[str, Any]) -> dict[str, Any]:
    """去掉未设置的可选字段，保持 JSON 简洁"""
    return {k: v for k, v in data.items() if v is not None and v != []}


# =========================================================================
# 导入配置 / 元数据
# =========================================================================


@dataclass
class ImportConfig:
    """单个导入的配置，保存在 .knowns/config.json 的 imports 数组中"""

    name: str
    source: str
    kind: ImportKind
    ref: str | None = None
    version: str | None = None
    include: list[str] | None = None
    exclude: list[str] | None = None
    auto_sync: bool | None = None
    link: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_empty({
            "name": self.name,
            "source": self.source,
            "kind": str(self.kind),
            "ref": self.ref,
            "version": self.version,
            "include": self.include,
            "exclude": self.exclude,
            "autoSync": self.auto_sync,
            "link": self.link,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImportConfig:
        return cls(
            name=data["name"],
            source=data.get("source", ""),
            kind=ImportKind(data.get("kind") or data.get("type") or "local"),
            ref=data.get("ref"),
            version=data.get("version"),
            include=data.get("include"),
            exclude=data.get("exclude"),
            auto_sync=data.get("autoSync"),
            link=data.get("link"),
        )


@dataclass
class ImportMetadata:
    """导入元数据：记录该导入上一次写入的内容（冲突检测基线）"""

    name: str
    source: str
    kind: ImportKind
    imported_at: str
    last_sync: str
    ref: str | None = None
    commit: str | None = None
    version: str | None = None
    files: list[str] = field(default_factory=list)
    file_hashes: dict[str, str] | None = None

    def to_dict(self) -> dict[str, Any]:
        data = _drop_empty({
            "name": self.name,
            "source": self.source,
            "kind": str(self.kind),
            "importedAt": self.imported_at,
            "lastSync": self.last_sync,
            "ref": self.ref,
            "commit": self.commit,
            "version": self.version,
        })
        data["files"] = list(self.files)
        if self.file_hashes is not None:
            data["fileHashes"] = dict(self.file_hashes)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImportMetadata:
        return cls(
            name=data["name"],
            source=data.get("source", ""),
            kind=ImportKind(data.get("kind") or data.get("type") or "local"),
            imported_at=data.get("importedAt", ""),
            last_sync=data.get("lastSync", ""),
            ref=data.get("ref"),
            commit=data.get("commit"),
            version=data.get("version"),
            files=list(data.get("files", [])),
            file_hashes=data.get("fileHashes"),
        )


# =========================================================================
# 操作选项
# =========================================================================


@dataclass
class ImportOptions:
    """import_source 的可选参数"""

    name: str = ""
    kind: ImportKind | None = None
    ref: str | None = None
    version: str | None = None
    include: list[str] | None = None
    exclude: list[str] | None = None
    link: bool = False
    force: bool = False
    no_save: bool = False
    dry_run: bool = False
    auto_sync: bool = False
    prune: bool = False
    # 同步时跳过"名称已存在"检查
    is_sync: bool = False


@dataclass
class SyncOptions:
    """sync_import / sync_all_imports 的可选参数"""

    force: bool = False
    prune: bool = False
    dry_run: bool = False


@dataclass
class FetchOptions:
    """传给 Provider 的参数"""

    ref: str | None = None
    version: str | None = None
    include: list[str] | None = None
    exclude: list[str] | None = None
    link: bool = False


# =========================================================================
# 结果
# =========================================================================


@dataclass
class FileChange:
    """导入 / 同步过程中的单个文件变更"""

    path: str
    action: FileAction
    skip_reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"path": self.path, "action": str(self.action)}
        if self.skip_reason:
            data["skipReason"] = self.skip_reason
        return data


@dataclass
class ImportResult:
    """导入 / 同步操作结果"""

    success: bool
    name: str
    source: str
    kind: ImportKind
    changes: list[FileChange] = field(default_factory=list)
    error: str | None = None
    metadata: ImportMetadata | None = None

    def count(self, action: FileAction) -> int:
        return sum(1 for c in self.changes if c.action == action)

    @property
    def conflicts(self) -> list[FileChange]:
        """因本地修改被跳过的文件"""
        return [
            c for c in self.changes
            if c.action == FileAction.SKIP and c.skip_reason == SKIP_LOCAL_MODIFIED
        ]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "name": self.name,
            "source": self.source,
            "kind": str(self.kind),
            "changes": [c.to_dict() for c in self.changes],
        }
        if self.error:
            data["error"] = self.error
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        return data


@dataclass
class ContentSummary:
    """.knowns/ 下可导入内容概况"""

    has_templates: bool = False
    has_docs: bool = False
    template_count: int = 0
    doc_count: int = 0


@dataclass
class ValidationResult:
    """来源 / 工作区校验结果"""

    valid: bool
    error: str = ""
    hint: str = ""
    kind: ImportKind | None = None
    content: ContentSummary | None = None
    # Provider 可给出更精确的错误分类（如 AUTH_REQUIRED）
    code: str = ""


# =========================================================================
# 解析
# =========================================================================


@dataclass
class ResolvedSource:
    """解析结果：绝对路径 + 来源"""

    path: str
    source: str  # "local" 或导入名
    is_imported: bool


@dataclass
class TemplateEntry:
    name: str
    ref: str
    source: str
    path: str
    is_imported: bool
    source_url: str | None = None


@dataclass
class DocEntry:
    name: str
    ref: str
    source: str
    full_path: str
    is_imported: bool
    source_url: str | None = None


@dataclass
class RefValidation:
    """文档中单个引用的校验结果"""

    ref: str
    type: str  # "doc" | "task"
    path: str
    exists: bool
