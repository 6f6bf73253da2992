"""数据库基础模型导出。

导入 idcore.models 以保证全部表注册到 Base.metadata；
生产环境结构由迁移脚本维护，测试环境可直接 create_all。
"""

import idcore.models  # noqa: F401
from idcore.models.base import Base

__all__ = ["Base"]
