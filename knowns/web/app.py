"""knowns HTTP API（基于 Flask）

提供：导入列表 / 详情、新增导入、同步、移除，以及模板 / 文档解析。

启动方式: knowns serve --port 8765
"""

from __future__ import annotations

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from knowns.core.exceptions import KnownsError
from knowns.web.blueprints import imports_bp, resolve_bp
from knowns.web.responses import error_response

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 1 * 1024 * 1024  # 1 MB

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = MAX_CONTENT_LENGTH


# =========================================================================
# 全局 JSON 错误处理
# =========================================================================


@app.errorhandler(KnownsError)
def handle_knowns_error(exc: KnownsError):
    """业务异常按错误码映射状态码"""
    logger.info("请求失败: %s (%s)", exc, exc.code)
    return error_response(exc)


@app.errorhandler(HTTPException)
def handle_http_exception(exc):
    """将所有 HTTP 异常统一返回 JSON"""
    return jsonify(error=exc.description), exc.code


@app.errorhandler(Exception)
def handle_generic_exception(exc):  # noqa: ARG001
    """捕获未处理异常，返回 500 JSON"""
    logger.exception("未处理的异常")
    return jsonify(error="服务器内部错误"), 500


app.register_blueprint(imports_bp)
app.register_blueprint(resolve_bp)


def run_server(port: int = 8765, debug: bool = False, host: str = "127.0.0.1") -> None:
    logger.info("knowns API 已启动: http://%s:%d", host, port)
    app.run(host=host, port=port, debug=debug)
