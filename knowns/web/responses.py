"""Web 层统一响应辅助函数

消除各 Blueprint 和 app.py 中重复的 jsonify(error=...), 400/404 模式。
"""

from __future__ import annotations

from flask import Response, jsonify

from knowns.core.exceptions import ImportErrorCode, KnownsError

# 错误码 -> HTTP 状态码，未列出的一律 400
_STATUS_BY_CODE = {
    ImportErrorCode.SOURCE_NOT_FOUND.value: 404,
    ImportErrorCode.NAME_CONFLICT.value: 409,
}


def ok(data: dict, status: int = 200) -> tuple[Response, int] | Response:
    """成功响应"""
    if status == 200:
        return jsonify(data)
    return jsonify(data), status


def not_found(resource: str) -> tuple[Response, int]:
    """资源不存在"""
    return jsonify(error=f"{resource}不存在"), 404


def bad_request(message: str) -> tuple[Response, int]:
    """请求参数错误"""
    return jsonify(error=message), 400


def error_status(exc: KnownsError) -> int:
    return _STATUS_BY_CODE.get(str(exc.code), 400)


def error_response(exc: KnownsError) -> tuple[Response, int]:
    """业务异常 -> {error, code, hint}"""
    return jsonify(exc.to_dict()), error_status(exc)
