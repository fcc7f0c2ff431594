"""数据库基础模型导出。

仅提供 Base 定义，建表由 `esurat-seed --create-tables` 或外部迁移负责。
"""

from esurat_api.models.base import Base

__all__ = ["Base"]
