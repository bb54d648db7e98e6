'''“组装 Flask App 的工厂”（不启动，不产生行为副作用）
app_factory.py 负责把 Flask 实例拼接好：注入配置，注册蓝图，初始化 token / 邮件 / 限流组件，注册 error handler
不负责建表、不调用 app.run()
会被 run.py、manage.py、gunicorn、单元测试调用'''
# mobile_crm/app_factory.py
from datetime import timedelta
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
import os
from dotenv import load_dotenv

from mobile_crm.errors import RateLimitError, ServiceError
from mobile_crm.logger import get_logger
from mobile_crm.rate_limiter import init_rate_limiters
from mobile_crm.services.email_service import EmailService
from mobile_crm.services.token_service import TokenService

# 加载环境变量
load_dotenv()

logger = get_logger(__name__)

# 获取项目根目录（使用绝对路径）
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

DEV_SECRET_KEY = 'dev-secret-key-change-in-production'


def _env_flag(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def create_app(config_name='development', test_config=None):
    """应用工厂函数"""
    app = Flask(__name__)

    # 基础配置
    # 确保 JWT_SECRET 是字符串类型（不是 bytes）
    secret_key = os.getenv('JWT_SECRET', DEV_SECRET_KEY)
    if isinstance(secret_key, bytes):
        secret_key = secret_key.decode('utf-8')
    app.config['JWT_SECRET'] = secret_key
    app.config['JWT_EXPIRES_DAYS'] = int(os.getenv('JWT_EXPIRES_DAYS', 7))
    app.config['API_PREFIX'] = os.getenv('API_PREFIX', '/api')
    app.config['TESTING'] = config_name == 'testing'

    # 数据库配置（使用绝对路径）
    db_path = os.path.join(BASE_DIR, 'mobile_crm.db')
    default_db_url = f"sqlite:///{db_path}"
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', default_db_url)

    # OTP / 邮件配置
    app.config['OTP_TTL_MINUTES'] = int(os.getenv('OTP_TTL_MINUTES', 10))
    app.config['EMAIL_HOST'] = os.getenv('EMAIL_HOST', 'smtp.gmail.com')
    app.config['EMAIL_PORT'] = int(os.getenv('EMAIL_PORT', 587))
    app.config['EMAIL_USER'] = os.getenv('EMAIL_USER')
    app.config['EMAIL_PASS'] = os.getenv('EMAIL_PASS')
    app.config['EMAIL_FROM'] = os.getenv('EMAIL_FROM')

    # 限流配置："<次数>/<秒数>"
    app.config['RATE_LIMIT_ENABLED'] = _env_flag('RATE_LIMIT_ENABLED', True)
    app.config['LOGIN_RATE_LIMIT'] = os.getenv('LOGIN_RATE_LIMIT', '20/60')
    app.config['OTP_RATE_LIMIT'] = os.getenv('OTP_RATE_LIMIT', '3/3600')

    if test_config:
        app.config.update(test_config)

    app.config['OTP_TTL'] = timedelta(minutes=app.config['OTP_TTL_MINUTES'])
    # get_engine() 从环境变量读取数据库地址
    os.environ.setdefault('DATABASE_URL', app.config['DATABASE_URL'])

    if app.config['JWT_SECRET'] == DEV_SECRET_KEY and not app.config['TESTING']:
        logger.warning("JWT_SECRET not set, using the development secret")

    # 初始化组件
    app.extensions['token_service'] = TokenService(
        app.config['JWT_SECRET'],
        expires_in=timedelta(days=app.config['JWT_EXPIRES_DAYS']),
    )
    app.extensions['email_service'] = EmailService.from_config(app.config)
    init_rate_limiters(app)

    # 注册蓝图
    from mobile_crm.routes.auth import auth_bp
    from mobile_crm.routes.health import health_bp

    prefix = app.config['API_PREFIX'].rstrip('/')
    app.register_blueprint(auth_bp, url_prefix=f"{prefix}/auth")
    app.register_blueprint(health_bp, url_prefix=prefix or None)

    # 注册错误处理
    register_error_handlers(app)

    return app


def register_error_handlers(app):
    """注册错误处理器：所有错误统一返回 {success: false, error: ...}"""
    @app.errorhandler(ServiceError)
    def service_error(error):
        response = jsonify(error.to_dict())
        response.status_code = error.status_code
        if isinstance(error, RateLimitError) and error.retry_after:
            response.headers['Retry-After'] = str(error.retry_after)
        return response

    @app.errorhandler(HTTPException)
    def http_error(error):
        response = jsonify({"success": False, "error": error.name})
        response.status_code = error.code
        return response

    @app.errorhandler(Exception)
    def internal_error(error):
        logger.exception(f"Unhandled error: {error}")
        return jsonify({"success": False, "error": "Internal Server Error"}), 500
