"""ImportStore 单元测试"""

from __future__ import annotations

import json

import pytest

from knowns.core.models import ImportConfig, ImportKind, ImportMetadata
from knowns.services.imports.store import ImportStore


def _meta(name: str, **kwargs) -> ImportMetadata:
    return ImportMetadata(
        name=name, source=kwargs.pop("source", "../src"), kind=ImportKind.LOCAL,
        imported_at="2024-01-01T00:00:00.000Z", last_sync="2024-01-01T00:00:00.000Z",
        **kwargs,
    )


class TestImportStore:
    @pytest.fixture()
    def store(self, project):
        return ImportStore(project)

    def test_empty_project(self, store) -> None:
        assert store.get_import_configs() == []
        assert store.read_metadata("x") is None
        assert store.list_with_metadata() == []

    def test_save_preserves_other_keys(self, store) -> None:
        store.config_path.write_text(json.dumps({"project": "demo"}), encoding="utf-8")
        store.save_import_config(ImportConfig("shared", "../shared", ImportKind.LOCAL, auto_sync=False))

        data = json.loads(store.config_path.read_text(encoding="utf-8"))
        assert data["project"] == "demo"
        assert data["imports"] == [
            {"name": "shared", "source": "../shared", "kind": "local", "autoSync": False},
        ]

    def test_save_replaces_same_name(self, store) -> None:
        store.save_import_config(ImportConfig("a", "one", ImportKind.NPM))
        store.save_import_config(ImportConfig("b", "two", ImportKind.NPM))
        store.save_import_config(ImportConfig("a", "three", ImportKind.NPM, ref="v2"))

        configs = store.get_import_configs()
        assert [c.name for c in configs] == ["a", "b"]
        assert configs[0].source == "three"
        assert configs[0].ref == "v2"

    def test_remove(self, store) -> None:
        store.save_import_config(ImportConfig("a", "one", ImportKind.NPM))
        assert store.remove_import_config("a") is True
        assert store.remove_import_config("a") is False
        assert not store.import_exists("a")

    def test_invalid_entry_skipped(self, store) -> None:
        store.config_path.write_text(json.dumps({"imports": [
            {"source": "no-name"},
            {"name": "ok", "source": "s", "kind": "git"},
            {"name": "bad-kind", "source": "s", "kind": "svn"},
        ]}), encoding="utf-8")
        assert [c.name for c in store.get_import_configs()] == ["ok"]

    def test_corrupt_config_treated_as_empty(self, store) -> None:
        store.config_path.write_text("{oops", encoding="utf-8")
        assert store.get_import_configs() == []

    def test_metadata_roundtrip(self, store) -> None:
        meta = _meta("a", files=["docs/x.md"], file_hashes={"docs/x.md": "0" * 16})
        path = store.write_metadata(meta)
        assert path == store.import_dir("a") / ".import.json"
        assert store.read_metadata("a") == meta

    def test_corrupt_metadata_is_none(self, store) -> None:
        store.metadata_path("a").parent.mkdir(parents=True)
        store.metadata_path("a").write_text("[]", encoding="utf-8")
        assert store.read_metadata("a") is None

    def test_linked_metadata_uses_sidecar(self, store, tmp_path) -> None:
        target = tmp_path / "elsewhere"
        target.mkdir()
        store.imports_dir.mkdir(parents=True)
        store.import_dir("linked").symlink_to(target, target_is_directory=True)

        meta = _meta("linked", files=["(symlinked)"])
        path = store.write_metadata(meta, linked=True)

        assert path == store.imports_dir / "linked.import.json"
        assert store.is_linked("linked")
        assert store.read_metadata("linked") == meta
        # 链接目标不被写入
        assert list(target.iterdir()) == []

    def test_list_includes_orphans(self, store) -> None:
        store.save_import_config(ImportConfig("configured", "src", ImportKind.NPM))
        store.write_metadata(_meta("orphan", source="../orphan-src"))
        store.import_dir("bare").mkdir(parents=True)
        store.import_dir(".hidden").mkdir(parents=True)

        items = {cfg.name: (cfg, meta) for cfg, meta in store.list_with_metadata()}
        assert set(items) == {"configured", "orphan", "bare"}
        assert items["configured"][1] is None
        assert items["orphan"][0].source == "../orphan-src"
        assert items["bare"][0].source == "unknown"
        assert items["bare"][0].kind == ImportKind.LOCAL
