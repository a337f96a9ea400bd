"""Web API 端点测试"""

from __future__ import annotations

from pathlib import Path

import pytest

from knowns.web.app import app


@pytest.fixture()
def client(config):
    """Flask 测试客户端，项目根指向临时目录"""
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


@pytest.fixture()
def source(make_source) -> Path:
    return make_source(
        "shared",
        templates={"component": {"index.hbs": "{{name}}"}},
        docs={"guide.md": "# guide"},
    )


def _add(client, source: Path, **body):
    return client.post("/api/imports", json={"source": str(source), **body})


class TestGlobalErrorHandlers:
    def test_404_returns_json(self, client) -> None:
        resp = client.get("/api/nonexistent")
        assert resp.status_code == 404
        assert "error" in resp.get_json()

    def test_405_returns_json(self, client) -> None:
        resp = client.delete("/api/imports")
        assert resp.status_code == 405
        assert "error" in resp.get_json()


class TestApiImports:
    def test_empty(self, client) -> None:
        resp = client.get("/api/imports")
        assert resp.status_code == 200
        assert resp.get_json()["imports"] == []

    def test_add_and_get(self, client, source, project) -> None:
        resp = _add(client, source)
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["success"] is True
        assert data["name"] == "shared"
        assert (project / ".knowns" / "imports" / "shared" / "docs" / "guide.md").is_file()

        item = client.get("/api/imports/shared").get_json()
        assert item["config"]["source"] == str(source)
        assert sorted(item["metadata"]["files"]) == ["docs/guide.md", "templates/component/index.hbs"]

        listed = client.get("/api/imports").get_json()["imports"]
        assert [i["config"]["name"] for i in listed] == ["shared"]

    def test_add_dry_run(self, client, source, project) -> None:
        resp = _add(client, source, dryRun=True)
        assert resp.status_code == 200
        assert len(resp.get_json()["changes"]) == 2
        assert not (project / ".knowns" / "imports").exists()

    def test_add_requires_source(self, client) -> None:
        resp = client.post("/api/imports", json={})
        assert resp.status_code == 400
        assert "source" in resp.get_json()["error"]

    def test_add_unknown_type(self, client, source) -> None:
        resp = _add(client, source, type="svn")
        assert resp.status_code == 400

    def test_name_conflict_is_409(self, client, source) -> None:
        _add(client, source)
        resp = _add(client, source)
        assert resp.status_code == 409
        data = resp.get_json()
        assert data["code"] == "NAME_CONFLICT"
        assert "hint" in data

    def test_missing_source_is_404(self, client, tmp_path) -> None:
        resp = _add(client, tmp_path / "nope", type="local")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "SOURCE_NOT_FOUND"

    def test_unsupported_catalog_is_400(self, client) -> None:
        resp = client.post("/api/imports", json={"source": "knowns://shared"})
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_SOURCE"

    def test_get_unknown(self, client) -> None:
        assert client.get("/api/imports/nope").status_code == 404


class TestApiSync:
    def test_sync_one(self, client, source, project) -> None:
        _add(client, source)
        (source / ".knowns" / "docs" / "guide.md").write_text("# guide v2", encoding="utf-8")

        resp = client.post("/api/imports/shared/sync")
        assert resp.status_code == 200
        changes = {c["path"]: c["action"] for c in resp.get_json()["changes"]}
        assert changes["docs/guide.md"] == "update"
        target = project / ".knowns" / "imports" / "shared" / "docs" / "guide.md"
        assert target.read_text(encoding="utf-8") == "# guide v2"

    def test_sync_unknown_is_404(self, client) -> None:
        resp = client.post("/api/imports/nope/sync")
        assert resp.status_code == 404

    def test_sync_all(self, client, source) -> None:
        _add(client, source, autoSync=True)
        resp = client.post("/api/imports/sync-all", json={"dryRun": True})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["success"] is True
        assert [r["name"] for r in data["results"]] == ["shared"]


class TestApiRemove:
    def test_remove(self, client, source, project) -> None:
        _add(client, source)
        resp = client.delete("/api/imports/shared?deleteFiles=true")
        assert resp.status_code == 200
        assert resp.get_json() == {"success": True, "deleted": True}
        assert not (project / ".knowns" / "imports" / "shared").exists()
        assert client.get("/api/imports/shared").status_code == 404

    def test_remove_unknown(self, client) -> None:
        assert client.delete("/api/imports/nope").status_code == 404


class TestApiResolve:
    def test_requires_params(self, client) -> None:
        assert client.get("/api/resolve/template").status_code == 400
        assert client.get("/api/resolve/doc").status_code == 400

    def test_resolve_after_import(self, client, source) -> None:
        _add(client, source)

        tpl = client.get("/api/resolve/template?name=component").get_json()
        assert tpl["source"] == "shared"
        assert tpl["is_imported"] is True

        doc = client.get("/api/resolve/doc?path=shared/guide").get_json()
        assert doc["path"].endswith("guide.md")

        assert client.get("/api/resolve/doc?path=missing").status_code == 404

        templates = client.get("/api/resolve/templates").get_json()["templates"]
        assert templates[0]["ref"] == "shared/component"
        assert templates[0]["source_url"] == str(source)

        docs = client.get("/api/resolve/docs").get_json()["docs"]
        assert [d["ref"] for d in docs] == ["shared/guide"]
