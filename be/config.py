import os
from datetime import timedelta


def _flag(name, default):
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'super-secret')
    JWT_SECRET_KEY = os.getenv('JWT_SECRET', 'jwt-secret')

    # 生产环境指向托管平台的 Postgres，本地开发默认 SQLite
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///cloud.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # 会话：JWT 存放在 cookie 中，2 小时过期
    SESSION_HOURS = int(os.getenv('SESSION_HOURS', '2'))
    JWT_TOKEN_LOCATION = ['cookies']
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=SESSION_HOURS)
    JWT_SESSION_COOKIE = True
    JWT_COOKIE_SECURE = _flag('JWT_COOKIE_SECURE', 'false')
    JWT_COOKIE_SAMESITE = 'Lax'
    JWT_COOKIE_CSRF_PROTECT = True
    JWT_CSRF_CHECK_FORM = True

    # 存储后端选择：local 或 s3
    STORAGE_BACKEND = os.getenv('STORAGE_BACKEND', 'local')
    UPLOAD_DIR = os.getenv('UPLOAD_DIR', './uploads')

    # 托管平台（数据库 + 对象存储）
    SUPABASE_URL = os.getenv('SUPABASE_URL', '')
    SUPABASE_KEY = os.getenv('SUPABASE_KEY', '')
    S3_BUCKET = os.getenv('S3_BUCKET', 'cloud-drive-files')
    STORAGE_ENDPOINT_URL = os.getenv(
        'STORAGE_ENDPOINT_URL',
        f"{SUPABASE_URL.rstrip('/')}/storage/v1/s3" if SUPABASE_URL else '',
    )
    STORAGE_PUBLIC_URL = os.getenv(
        'STORAGE_PUBLIC_URL',
        f"{SUPABASE_URL.rstrip('/')}/storage/v1/object/public" if SUPABASE_URL else '/storage',
    )

    # S3 / MinIO
    AWS_ACCESS_KEY = os.getenv('AWS_ACCESS_KEY', 'test-key')
    AWS_SECRET_KEY = os.getenv('AWS_SECRET_KEY', SUPABASE_KEY or 'test-secret')
    AWS_REGION = os.getenv('AWS_REGION', 'us-east-1')

    DEFAULT_STORAGE_LIMIT_MB = int(os.getenv('DEFAULT_STORAGE_LIMIT_MB', '1024'))
    MAX_CONTENT_LENGTH = int(os.getenv('MAX_UPLOAD_MB', '1024')) * 1024 * 1024

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    JWT_SECRET_KEY = 'test-secret'
    JWT_COOKIE_CSRF_PROTECT = False
    STORAGE_BACKEND = 'local'
    STORAGE_PUBLIC_URL = '/storage'
    S3_BUCKET = 'test-bucket'
