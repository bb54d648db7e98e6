# manage.py
"""
账号维护脚本
⚠️ 仅用于运维 / 手动维护，直接操作数据库，不经过 HTTP 接口

python manage.py init-db
python manage.py reset-password <username> <new_password>
python manage.py reset-recovery-key <username> [--key secret]
python manage.py set-email <username> <email>      # 传 "-" 解绑邮箱
python manage.py backfill-recovery-keys [--key secret]
"""
import argparse
import sys

from mobile_crm.app_factory import create_app
from mobile_crm.db.auto_init import auto_init
from mobile_crm.db.session import get_session
from mobile_crm.errors import NotFoundError
from mobile_crm.services.auth_service import DEFAULT_RECOVERY_KEY
from mobile_crm.services.recovery_service import MIN_PASSWORD_LENGTH
from mobile_crm.services.user_service import UserService


def reset_password(username, new_password):
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    db = get_session()
    try:
        user_service = UserService(db)
        user = user_service.require_user_by_username(username)
        user_service.reset_password(user=user, new_password=new_password)
        db.commit()
        print(f"✅ 用户 '{username}' 密码已重置")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def reset_recovery_key(username, key):
    db = get_session()
    try:
        user_service = UserService(db)
        user = user_service.require_user_by_username(username)
        user_service.set_recovery_key(user=user, recovery_key=key)
        db.commit()
        print(f"✅ 用户 '{username}' 恢复密钥已重置")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def set_email(username, email):
    db = get_session()
    try:
        user_service = UserService(db)
        user = user_service.require_user_by_username(username)
        user_service.set_email(user=user, email=None if email == "-" else email)
        db.commit()
        if user.email:
            print(f"✅ 用户 '{username}' 已绑定邮箱 {user.email}")
        else:
            print(f"✅ 用户 '{username}' 已解绑邮箱")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def backfill_recovery_keys(key):
    db = get_session()
    try:
        count = UserService(db).backfill_recovery_keys(key)
        db.commit()
        print(f"✅ 已为 {count} 个用户设置默认恢复密钥")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def build_parser():
    parser = argparse.ArgumentParser(description="Mobile CRM account maintenance")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create tables if missing")

    p = sub.add_parser("reset-password", help="set a new login password")
    p.add_argument("username")
    p.add_argument("new_password")

    p = sub.add_parser("reset-recovery-key", help="set a new recovery key")
    p.add_argument("username")
    p.add_argument("--key", default=DEFAULT_RECOVERY_KEY)

    p = sub.add_parser("set-email", help="link ('-' to unlink) the OTP email address")
    p.add_argument("username")
    p.add_argument("email")

    p = sub.add_parser("backfill-recovery-keys", help="set the recovery key where none is configured")
    p.add_argument("--key", default=DEFAULT_RECOVERY_KEY)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    # 加载 .env，确定数据库地址
    create_app()
    auto_init()

    try:
        if args.command == "reset-password":
            reset_password(args.username, args.new_password)
        elif args.command == "reset-recovery-key":
            reset_recovery_key(args.username, args.key)
        elif args.command == "set-email":
            set_email(args.username, args.email)
        elif args.command == "backfill-recovery-keys":
            backfill_recovery_keys(args.key)
    except (NotFoundError, ValueError) as e:
        print(f"❌ 操作失败: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
