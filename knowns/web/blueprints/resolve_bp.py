"""模板 / 文档解析 API Blueprint"""

from __future__ import annotations

from dataclasses import asdict

from flask import Blueprint, Response, jsonify, request

from knowns.web.responses import bad_request, not_found

resolve_bp = Blueprint("resolve", __name__, url_prefix="/api/resolve")


def _resolver():  # type: ignore[no-untyped-def]
    from knowns.services.container import get_container
    return get_container().resolver


@resolve_bp.route("/template", methods=["GET"])
def template() -> tuple[Response, int] | Response:
    name = request.args.get("name", "")
    if not name:
        return bad_request("需要提供 name")
    resolved = _resolver().resolve_template(name)
    if resolved is None:
        return not_found("模板")
    return jsonify(asdict(resolved))


@resolve_bp.route("/doc", methods=["GET"])
def doc() -> tuple[Response, int] | Response:
    path = request.args.get("path", "")
    if not path:
        return bad_request("需要提供 path")
    resolved = _resolver().resolve_doc(path, context=request.args.get("context") or None)
    if resolved is None:
        return not_found("文档")
    return jsonify(asdict(resolved))


@resolve_bp.route("/templates", methods=["GET"])
def templates() -> Response:
    return jsonify(templates=[asdict(t) for t in _resolver().list_all_templates()])


@resolve_bp.route("/docs", methods=["GET"])
def docs() -> Response:
    return jsonify(docs=[asdict(d) for d in _resolver().list_all_docs()])
