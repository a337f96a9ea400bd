"""HTTP API Blueprint

- imports_bp: /api/imports 导入管理
- resolve_bp: /api/resolve 模板 / 文档解析
"""

from knowns.web.blueprints.imports_bp import imports_bp
from knowns.web.blueprints.resolve_bp import resolve_bp

__all__ = ["imports_bp", "resolve_bp"]
