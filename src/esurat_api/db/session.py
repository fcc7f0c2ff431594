"""引擎与请求级会话。"""

from collections.abc import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from esurat_api.core.config import get_settings

engine = create_engine(get_settings().database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False)


def get_db() -> Iterator[Session]:
    """路由依赖：每个请求一个会话，请求结束即关闭，提交由路由显式完成。"""
    with SessionLocal() as db:
        yield db
