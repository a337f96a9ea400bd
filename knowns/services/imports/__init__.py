"""导入子系统

拆分说明：
- store.py: .knowns/config.json 的 imports 配置与每个导入的元数据
- validator.py: .knowns/ 内容校验、来源类型推断、导入名称生成
- sync.py: 内容哈希、三方比较、复制与 prune
- resolver.py: 本地 + 导入内容的模板 / 文档解析
- providers/: git / npm / local 来源
"""

from knowns.services.imports.resolver import ImportResolver
from knowns.services.imports.store import ImportStore
from knowns.services.imports.sync import PlannedAction, plan_file_action

__all__ = [
    "ImportResolver",
    "ImportStore",
    "PlannedAction",
    "plan_file_action",
]
