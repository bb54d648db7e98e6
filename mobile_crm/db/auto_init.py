"""
数据库自动初始化检查模块
在应用启动时自动检查并执行必要的初始化步骤
用户不会在这里创建：首个账号只能通过 POST /auth/register 注册
"""
from sqlalchemy import inspect
from mobile_crm.db.session import get_engine, get_session
from mobile_crm.db.init_db import init_db
from mobile_crm.logger import get_logger
from mobile_crm.services.user_service import UserService

logger = get_logger(__name__)


def check_tables_exist() -> bool:
    """检查数据库表是否存在"""
    engine = get_engine()
    inspector = inspect(engine)
    tables = inspector.get_table_names()
    return "users" in tables


def registration_open() -> bool:
    """还没有任何用户时，注册入口开放"""
    db = get_session()
    try:
        return UserService(db).count_users() == 0
    finally:
        db.close()


def auto_init():
    """
    自动初始化检查
    如果数据库表不存在则建表，并提示注册入口状态
    """
    logger.info("🔍 检查数据库初始化状态...")

    if not check_tables_exist():
        logger.info("📦 数据库表不存在，正在创建...")
        try:
            init_db()
        except Exception:
            logger.exception("❌ 数据库表创建失败")
            raise
        logger.info("✅ 数据库表创建成功")
    else:
        logger.info("✅ 数据库表已存在")

    if registration_open():
        logger.info("👤 尚无用户，请调用 POST /api/auth/register 注册管理员账号")
    else:
        logger.info("✅ 管理员账号已存在，注册入口已关闭")

    logger.info("🎉 数据库初始化检查完成")


if __name__ == "__main__":
    auto_init()
