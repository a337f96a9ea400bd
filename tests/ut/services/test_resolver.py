"""ImportResolver 单元测试：解析优先级、列表、引用校验"""

from __future__ import annotations

from pathlib import Path

import pytest

from knowns.core.models import ImportConfig, ImportKind
from knowns.services.imports.resolver import ImportResolver
from knowns.services.imports.store import ImportStore


def _write(path: Path, content: str = "x") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture()
def resolver(project) -> ImportResolver:
    knowns = project / ".knowns"
    imports = knowns / "imports"

    _write(knowns / "templates" / "component" / "index.hbs", "local")
    _write(knowns / "docs" / "guide.md", "local guide")
    _write(knowns / "docs" / "local-only.md")

    _write(imports / "alpha" / "templates" / "component" / "index.hbs", "alpha")
    _write(imports / "alpha" / "templates" / "page" / "index.hbs", "alpha")
    _write(imports / "alpha" / "docs" / "guide.md", "alpha guide")
    _write(imports / "alpha" / "docs" / "sub" / "deep.md")
    _write(imports / "alpha" / "docs" / ".drafts" / "wip.md")

    _write(imports / "beta" / "templates" / "page" / "index.hbs", "beta")
    _write(imports / "beta" / "docs" / "guide.md", "beta guide")

    store = ImportStore(project)
    store.save_import_config(ImportConfig("alpha", "https://github.com/org/alpha.git", ImportKind.GIT))
    return ImportResolver(store)


class TestDirectories:
    def test_local_first_then_sorted_imports(self, resolver) -> None:
        assert [d.source for d in resolver.template_directories()] == ["local", "alpha", "beta"]
        assert [d.is_imported for d in resolver.doc_directories()] == [False, True, True]

    def test_empty_project(self, tmp_path) -> None:
        r = ImportResolver(ImportStore(tmp_path))
        assert r.template_directories() == []
        assert r.list_all_docs() == []


class TestResolveTemplate:
    def test_local_wins(self, resolver) -> None:
        resolved = resolver.resolve_template("component")
        assert resolved.source == "local"
        assert not resolved.is_imported

    def test_first_import_in_order(self, resolver) -> None:
        resolved = resolver.resolve_template("page")
        assert resolved.source == "alpha"
        assert resolved.is_imported

    def test_scoped_reference(self, resolver) -> None:
        resolved = resolver.resolve_template("beta/page")
        assert resolved.source == "beta"
        assert Path(resolved.path).parts[-3:] == ("beta", "templates", "page")

    def test_scoped_reference_does_not_fall_back(self, resolver) -> None:
        assert resolver.resolve_template("beta/component") is None

    def test_unknown_prefix_is_plain_path(self, resolver) -> None:
        assert resolver.resolve_template("gamma/page") is None
        assert resolver.resolve_template("missing") is None


class TestResolveDoc:
    def test_imports_before_local(self, resolver) -> None:
        resolved = resolver.resolve_doc("guide")
        assert resolved.source == "alpha"
        assert Path(resolved.path).read_text(encoding="utf-8") == "alpha guide"

    def test_context_first(self, resolver) -> None:
        assert resolver.resolve_doc("guide", context="beta").source == "beta"

    def test_local_fallback(self, resolver) -> None:
        resolved = resolver.resolve_doc("local-only")
        assert resolved.source == "local"
        assert not resolved.is_imported

    def test_extension_optional(self, resolver) -> None:
        assert resolver.resolve_doc("guide.md").path == resolver.resolve_doc("guide").path

    def test_scoped(self, resolver) -> None:
        assert resolver.resolve_doc("beta/guide").source == "beta"
        assert resolver.resolve_doc("alpha/sub/deep").source == "alpha"
        assert resolver.resolve_doc("beta/sub/deep") is None

    def test_scoped_ignores_context(self, resolver) -> None:
        assert resolver.resolve_doc("alpha/guide", context="beta").source == "alpha"

    def test_missing(self, resolver) -> None:
        assert resolver.resolve_doc("nope") is None


class TestListing:
    def test_templates(self, resolver) -> None:
        templates = resolver.list_all_templates()
        assert [t.ref for t in templates] == ["alpha/component", "alpha/page", "beta/page", "component"]
        by_ref = {t.ref: t for t in templates}
        assert by_ref["alpha/page"].source_url == "https://github.com/org/alpha.git"
        assert by_ref["beta/page"].source_url is None
        assert by_ref["component"].source_url is None
        assert by_ref["component"].name == "component"

    def test_docs(self, resolver) -> None:
        docs = resolver.list_all_docs()
        assert [d.ref for d in docs] == [
            "alpha/guide", "alpha/sub/deep", "beta/guide", "guide", "local-only",
        ]
        deep = next(d for d in docs if d.ref == "alpha/sub/deep")
        assert deep.name == "sub/deep"
        assert deep.full_path.endswith("deep.md")


class TestValidateRefs:
    def test_doc_and_task_refs(self, resolver, tmp_path) -> None:
        tasks = tmp_path / "tasks"
        _write(tasks / "task-42.md")
        content = (
            "See @doc/guide and @docs/beta/guide, also @doc/guide.md again;\n"
            "broken @doc/nope, done in @task-42 and @task-7.1"
        )

        results = resolver.validate_refs(content, tasks_dir=tasks)
        assert [(r.type, r.path, r.exists) for r in results] == [
            ("doc", "guide", True),
            ("doc", "beta/guide", True),
            ("doc", "nope", False),
            ("task", "42", True),
            ("task", "7.1", False),
        ]
        assert results[0].ref == "@doc/guide"
        assert results[3].ref == "@task-42"

    def test_tasks_without_dir(self, resolver) -> None:
        results = resolver.validate_refs("@task-1")
        assert results[0].exists is False
