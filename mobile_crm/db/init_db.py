from mobile_crm.db.session import get_engine
from mobile_crm.db.base import Base
# 注册所有表到 Base.metadata
from mobile_crm.models import user  # noqa: F401


def init_db():
    engine = get_engine()
    Base.metadata.create_all(bind=engine)


def drop_db():
    engine = get_engine()
    Base.metadata.drop_all(bind=engine)
