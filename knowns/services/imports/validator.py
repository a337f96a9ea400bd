"""导入来源校验

职责：
- 检查目录是否包含 .knowns/ 以及 templates/ 或 docs/
- 根据来源字符串推断导入类型
- 生成 / 校验导入名称
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from knowns.core.exceptions import ImportErrorCode, ImportSourceError
from knowns.core.models import ContentSummary, ImportKind, ValidationResult

logger = logging.getLogger(__name__)

KNOWNS_DIR = ".knowns"
TEMPLATES_DIR = "templates"
DOCS_DIR = "docs"
CONTENT_DIRS = (TEMPLATES_DIR, DOCS_DIR)

CATALOG_SCHEME = "knowns://"
MAX_NAME_LENGTH = 50

_NAME_RE = re.compile(r"^[a-z][a-z0-9-]*$")
_GIT_HOSTS = ("github.com", "gitlab.com", "bitbucket.org")
_LOCAL_PREFIXES = ("./", "../", "/", "~")


def _count_templates(path: Path) -> int:
    try:
        return sum(1 for e in path.iterdir() if e.is_dir())
    except OSError:
        return 0


def _count_docs(path: Path) -> int:
    try:
        return sum(1 for e in path.iterdir() if e.is_file() and e.name.endswith(".md"))
    except OSError:
        return 0


def validate_knowns_dir(directory: str | Path) -> ValidationResult:
    """校验目录下的 .knowns/ 结构并统计可导入内容

    计数失败（目录不可读等）按 0 处理，不影响校验结论。
    """
    knowns_path = Path(directory) / KNOWNS_DIR

    if not knowns_path.is_dir():
        return ValidationResult(
            valid=False,
            error="来源中不包含 .knowns/ 目录",
            hint="只能导入启用了 Knowns 的项目",
            code=str(ImportErrorCode.NO_KNOWNS_DIR),
        )

    templates_path = knowns_path / TEMPLATES_DIR
    docs_path = knowns_path / DOCS_DIR
    has_templates = templates_path.is_dir()
    has_docs = docs_path.is_dir()

    if not has_templates and not has_docs:
        return ValidationResult(
            valid=False,
            error="来源的 .knowns/ 目录为空",
            hint=".knowns/ 目录下必须包含 templates/ 或 docs/",
            code=str(ImportErrorCode.EMPTY_IMPORT),
        )

    return ValidationResult(
        valid=True,
        content=ContentSummary(
            has_templates=has_templates,
            has_docs=has_docs,
            template_count=_count_templates(templates_path) if has_templates else 0,
            doc_count=_count_docs(docs_path) if has_docs else 0,
        ),
    )


def assert_valid_knowns_dir(result: ValidationResult) -> None:
    """校验失败时抛 ImportSourceError"""
    if result.valid:
        return
    code = ImportErrorCode.NO_KNOWNS_DIR
    if result.code == ImportErrorCode.EMPTY_IMPORT.value:
        code = ImportErrorCode.EMPTY_IMPORT
    raise ImportSourceError(result.error or "无效的来源", code, result.hint)


def detect_import_kind(source: str) -> ImportKind | None:
    """根据来源字符串推断导入类型，无法判断返回 None"""
    if (
        source.endswith(".git")
        or source.startswith("git@")
        or any(host in source for host in _GIT_HOSTS)
    ):
        return ImportKind.GIT

    if source.startswith("@") or _NAME_RE.match(source):
        return ImportKind.NPM

    if source.startswith(CATALOG_SCHEME):
        return ImportKind.CATALOG

    if source.startswith(_LOCAL_PREFIXES) or Path(source).exists():
        return ImportKind.LOCAL

    return None


def validate_import_name(name: str) -> str:
    """校验导入名称，合法返回空串，否则返回错误描述"""
    if not name:
        return "导入名称不能为空"
    if not _NAME_RE.match(name):
        return "导入名称必须为 kebab-case（小写字母、数字、连字符）"
    if len(name) > MAX_NAME_LENGTH:
        return f"导入名称不能超过 {MAX_NAME_LENGTH} 个字符"
    return ""


def generate_import_name(source: str, kind: ImportKind) -> str:
    """从来源推导导入名称

    https://example.com/org/my-templates.git -> my-templates
    @scope/pkg -> pkg
    ../shared/.knowns -> shared
    """
    name = ""
    if kind == ImportKind.GIT:
        m = re.search(r"[/:]([^/:]+?)(\.git)?/?$", source)
        name = m.group(1) if m else ""
    elif kind == ImportKind.NPM:
        m = re.match(r"(?:@[^/]+/)?([^@]+)", source)
        name = m.group(1) if m else ""
    elif kind == ImportKind.LOCAL:
        parts = source.rstrip("/").split("/")
        name = parts[-1]
        if name == KNOWNS_DIR:
            name = parts[-2] if len(parts) > 1 else ""
    elif kind == ImportKind.CATALOG:
        name = source[len(CATALOG_SCHEME):].split("@")[0]

    name = re.sub(r"[^a-z0-9-]", "-", name.lower())
    name = name.strip("-")
    return name or "imported"
