# run.py
"""
run.py
标准 Flask 服务启动脚本（给开发者 / 运维 / CLI 用）
生产环境请用 gunicorn 之类的 WSGI 服务器加载 mobile_crm.app_factory:create_app()
"""
import os
from mobile_crm.app_factory import create_app
from mobile_crm.db.auto_init import auto_init


def main():
    # 1️创建 Flask app（会加载 .env 并确定数据库地址）
    app = create_app(os.getenv("APP_ENV", "development"))

    # 2️启动前初始化数据库
    auto_init()

    # 3️启动参数
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 3000))
    debug = os.getenv("FLASK_DEBUG", "0") == "1"

    # 4️启动服务
    app.run(host=host, port=port, debug=debug, use_reloader=False)


if __name__ == "__main__":
    main()
