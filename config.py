import os
from dotenv import load_dotenv

# 加载 .env 环境变量
load_dotenv()
basedir = os.path.abspath(os.path.dirname(__file__))

class Config:
    """基础配置类"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'hard-to-guess-string'

    # 数据库配置
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_RECORD_QUERIES = True

    # 身份令牌有效期 (秒)
    TOKEN_MAX_AGE = int(os.environ.get('TOKEN_MAX_AGE', 7 * 24 * 3600))

    # 订单引擎配置
    RETURN_WINDOW_DAYS = int(os.environ.get('RETURN_WINDOW_DAYS', 7))  # 退货窗口
    SHIPPING_FEE_PER_KM = os.environ.get('SHIPPING_FEE_PER_KM', '1000')  # 每公里运费
    TRACKING_CODE_LENGTH = 10
    # 下单成功后是否清除已结算的购物车条目
    ORDER_CLEAR_CART = os.environ.get('ORDER_CLEAR_CART', 'true').lower() in ('1', 'true', 'yes')

    @staticmethod
    def init_app(app):
        pass

class DevelopmentConfig(Config):
    """开发环境配置"""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'salehub.db')

    @staticmethod
    def init_app(app):
        # 确保 sqlite 目录存在
        instance_dir = os.path.join(basedir, 'instance')
        if not os.path.exists(instance_dir):
            os.makedirs(instance_dir)

class ProductionConfig(Config):
    """生产环境配置"""
    DEBUG = False

    DATABASE_URL = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'salehub_prod.db')
    # PostgreSQL URL 修正（部分托管平台使用 postgres://）
    if DATABASE_URL and DATABASE_URL.startswith('postgres://'):
        DATABASE_URL = DATABASE_URL.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = DATABASE_URL

    @classmethod
    def init_app(cls, app):
        Config.init_app(app)

class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_RECORD_QUERIES = False

config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
