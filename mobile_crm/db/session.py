# mobile_crm/db/session.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
import os

_engine = None
_SessionLocal = None


def get_engine():
    global _engine
    if _engine is None:
        db_url = os.environ.get("DATABASE_URL")
        if not db_url:
            raise RuntimeError("DATABASE_URL not set")

        engine_kwargs = {}
        if db_url.startswith("sqlite"):
            # sqlite 连接跨线程复用（Flask 开发服务器多线程）
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in db_url or db_url in ("sqlite://", "sqlite:///"):
                # 内存库：所有 session 共享同一个连接，否则每个连接都是空库
                engine_kwargs["poolclass"] = StaticPool
        _engine = create_engine(db_url, **engine_kwargs)
    return _engine


def get_session():
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=get_engine()
        )
    return _SessionLocal()

