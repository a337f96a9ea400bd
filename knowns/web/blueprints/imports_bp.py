"""导入管理 API Blueprint"""

from __future__ import annotations

from flask import Blueprint, Response, jsonify, request

from knowns.core.models import ImportKind, ImportOptions, SyncOptions
from knowns.web.responses import bad_request, not_found, ok

imports_bp = Blueprint("imports", __name__, url_prefix="/api/imports")


def _import_svc():  # type: ignore[no-untyped-def]
    from knowns.services.container import get_container
    return get_container().imports


def _as_list(value) -> list[str] | None:  # type: ignore[no-untyped-def]
    if not value:
        return None
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def _item_dict(item: dict) -> dict:
    meta = item["metadata"]
    return {"config": item["config"].to_dict(), "metadata": meta.to_dict() if meta else None}


@imports_bp.route("", methods=["GET"])
def list_all() -> Response:
    return jsonify(imports=[_item_dict(i) for i in _import_svc().list_imports()])


@imports_bp.route("/<name>", methods=["GET"])
def get(name: str) -> tuple[Response, int] | Response:
    item = _import_svc().get_import(name)
    if item is None:
        return not_found("导入")
    return jsonify(_item_dict(item))


@imports_bp.route("", methods=["POST"])
def add() -> tuple[Response, int] | Response:
    body = request.get_json(silent=True) or {}
    source = body.get("source", "")
    if not source:
        return bad_request("需要提供 source")

    kind = body.get("type") or body.get("kind")
    if kind and kind not in (k.value for k in ImportKind):
        return bad_request(f"不支持的导入类型: {kind}")

    options = ImportOptions(
        name=body.get("name", ""),
        kind=ImportKind(kind) if kind else None,
        ref=body.get("ref"),
        version=body.get("version"),
        include=_as_list(body.get("include")),
        exclude=_as_list(body.get("exclude")),
        link=bool(body.get("link", False)),
        force=bool(body.get("force", False)),
        dry_run=bool(body.get("dryRun", False)),
        no_save=bool(body.get("noSave", False)),
        auto_sync=bool(body.get("autoSync", False)),
    )
    result = _import_svc().import_source(source, options)
    return ok(result.to_dict(), status=200 if options.dry_run else 201)


def _sync_options() -> SyncOptions:
    body = request.get_json(silent=True) or {}
    return SyncOptions(
        force=bool(body.get("force", False)),
        prune=bool(body.get("prune", False)),
        dry_run=bool(body.get("dryRun", False)),
    )


@imports_bp.route("/sync-all", methods=["POST"])
def sync_all() -> Response:
    results = _import_svc().sync_all_imports(_sync_options())
    return jsonify(
        success=all(r.success for r in results),
        results=[r.to_dict() for r in results],
    )


@imports_bp.route("/<name>/sync", methods=["POST"])
def sync(name: str) -> Response:
    return jsonify(_import_svc().sync_import(name, _sync_options()).to_dict())


@imports_bp.route("/<name>", methods=["DELETE"])
def delete(name: str) -> Response:
    delete_files = request.args.get("deleteFiles", "").lower() in ("1", "true", "yes")
    return jsonify(_import_svc().remove_import(name, delete_files=delete_files))
