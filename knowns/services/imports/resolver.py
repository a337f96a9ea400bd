"""模板 / 文档解析

在本地与各导入的内容根之间按固定优先级解析引用：

- 模板: 本地优先，其次按目录顺序遍历导入
- 文档: 有上下文时先查上下文导入，再查其他导入，最后本地；
        无上下文时先导入后本地
- "<导入名>/<子路径>" 且该导入目录存在时，只在该导入中查找
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from knowns.core.models import DocEntry, RefValidation, ResolvedSource, TemplateEntry
from knowns.services.imports.store import ImportStore
from knowns.services.imports.validator import DOCS_DIR, TEMPLATES_DIR

logger = logging.getLogger(__name__)

LOCAL_SOURCE = "local"

_DOC_REF_RE = re.compile(r"@docs?/([^\s,;:!?\"'()\]]+)")
_TASK_REF_RE = re.compile(r"@task-([a-zA-Z0-9]+(?:\.[a-zA-Z0-9]+)?)")


def _with_md(path: str) -> str:
    return path if path.endswith(".md") else f"{path}.md"


class ImportResolver:
    """本地 + 导入内容的引用解析器"""

    def __init__(self, store: ImportStore) -> None:
        self.store = store

    # ---- 内容根 ----

    def _content_dirs(self, subdir: str) -> list[ResolvedSource]:
        """本地在前，导入按目录名排序在后"""
        results: list[ResolvedSource] = []
        local = self.store.knowns_dir / subdir
        if local.is_dir():
            results.append(ResolvedSource(str(local), LOCAL_SOURCE, False))

        imports_dir = self.store.imports_dir
        if not imports_dir.is_dir():
            return results
        try:
            entries = sorted(imports_dir.iterdir())
        except OSError as e:
            logger.warning("无法扫描导入目录 %s: %s", imports_dir, e)
            return results
        for entry in entries:
            if not entry.is_dir():
                continue
            imported = entry / subdir
            if imported.is_dir():
                results.append(ResolvedSource(str(imported), entry.name, True))
        return results

    def template_directories(self) -> list[ResolvedSource]:
        return self._content_dirs(TEMPLATES_DIR)

    def doc_directories(self) -> list[ResolvedSource]:
        return self._content_dirs(DOCS_DIR)

    def _split_import(self, ref: str) -> tuple[str | None, str]:
        """"shared/component" -> ("shared", "component")，首段不是导入目录时返回 (None, ref)"""
        head, sep, rest = ref.partition("/")
        if not sep or not head:
            return None, ref
        if self.store.import_dir(head).is_dir():
            return head, rest
        return None, ref

    # ---- 解析 ----

    def resolve_template(self, name: str) -> ResolvedSource | None:
        import_name, sub_path = self._split_import(name)
        if import_name:
            path = self.store.import_dir(import_name) / TEMPLATES_DIR / sub_path
            if path.exists():
                return ResolvedSource(str(path), import_name, True)
            return None

        for directory in self.template_directories():
            path = Path(directory.path) / name
            if path.exists():
                return ResolvedSource(str(path), directory.source, directory.is_imported)
        return None

    def resolve_doc(self, doc_path: str, context: str | None = None) -> ResolvedSource | None:
        """解析文档引用

        context 为引用所在文档的导入名，使导入内的相对引用优先在同一导入中解析。
        显式的 "<导入名>/<路径>" 引用忽略 context。
        """
        import_name, sub_path = self._split_import(doc_path)
        sub_path = _with_md(sub_path)

        if import_name:
            path = self.store.import_dir(import_name) / DOCS_DIR / sub_path
            if path.is_file():
                return ResolvedSource(str(path), import_name, True)
            return None

        directories = self.doc_directories()
        ordered: list[ResolvedSource] = []
        if context:
            ordered += [d for d in directories if d.is_imported and d.source == context]
        ordered += [d for d in directories if d.is_imported and d.source != context]
        ordered += [d for d in directories if not d.is_imported]

        for directory in ordered:
            path = Path(directory.path) / sub_path
            if path.is_file():
                return ResolvedSource(str(path), directory.source, directory.is_imported)
        return None

    # ---- 列表 ----

    def _source_urls(self) -> dict[str, str]:
        return {c.name: c.source for c in self.store.get_import_configs()}

    def list_all_templates(self) -> list[TemplateEntry]:
        urls = self._source_urls()
        results: list[TemplateEntry] = []
        for directory in self.template_directories():
            base = Path(directory.path)
            try:
                entries = list(base.iterdir())
            except OSError as e:
                logger.warning("无法读取模板目录 %s: %s", base, e)
                continue
            for entry in entries:
                if not entry.is_dir() or entry.name.startswith("."):
                    continue
                results.append(TemplateEntry(
                    name=entry.name,
                    ref=f"{directory.source}/{entry.name}" if directory.is_imported else entry.name,
                    source=directory.source,
                    path=str(entry),
                    is_imported=directory.is_imported,
                    source_url=urls.get(directory.source) if directory.is_imported else None,
                ))
        return sorted(results, key=lambda t: t.ref)

    def list_all_docs(self) -> list[DocEntry]:
        urls = self._source_urls()
        results: list[DocEntry] = []
        for directory in self.doc_directories():
            base = Path(directory.path)
            for path in sorted(base.rglob("*.md")):
                rel = path.relative_to(base)
                if any(part.startswith(".") for part in rel.parts) or not path.is_file():
                    continue
                doc_name = rel.as_posix()[: -len(".md")]
                results.append(DocEntry(
                    name=doc_name,
                    ref=f"{directory.source}/{doc_name}" if directory.is_imported else doc_name,
                    source=directory.source,
                    full_path=str(path),
                    is_imported=directory.is_imported,
                    source_url=urls.get(directory.source) if directory.is_imported else None,
                ))
        return sorted(results, key=lambda d: d.ref)

    # ---- 引用校验 ----

    def validate_refs(self, content: str, tasks_dir: str | Path | None = None) -> list[RefValidation]:
        """提取并校验内容中的 @doc/... 与 @task-... 引用（去重）"""
        results: list[RefValidation] = []
        seen: set[str] = set()

        for m in _DOC_REF_RE.finditer(content):
            doc_path = m.group(1)
            if doc_path.endswith(".md"):
                doc_path = doc_path[: -len(".md")]
            if f"doc:{doc_path}" in seen:
                continue
            seen.add(f"doc:{doc_path}")
            results.append(RefValidation(
                ref=f"@doc/{doc_path}", type="doc", path=doc_path,
                exists=self.resolve_doc(doc_path) is not None,
            ))

        for m in _TASK_REF_RE.finditer(content):
            task_id = m.group(1)
            if f"task:{task_id}" in seen:
                continue
            seen.add(f"task:{task_id}")
            exists = bool(tasks_dir) and (Path(tasks_dir) / f"task-{task_id}.md").is_file()
            results.append(RefValidation(
                ref=f"@task-{task_id}", type="task", path=task_id, exists=exists,
            ))

        return results
