import logging
import colorlog
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from config import config
from salehub.extensions import db, migrate, login_manager
from salehub.exceptions import SaleHubException

from salehub import commands


def create_app(config_name='default'):
    """SaleHub 应用工厂函数"""
    app = Flask(__name__)

    # 1. 加载配置
    app.config.from_object(config[config_name])
    config[config_name].init_app(app)

    # 2. 初始化扩展
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    # 3. 订单引擎协作者 (测试中可替换)
    register_collaborators(app)

    # 4. 配置日志
    configure_logging(app)

    # 5. 注册蓝图 (Blueprints)
    register_blueprints(app)

    # 6. 注册全局错误处理
    register_error_handlers(app)

    # 7. 注册 CLI 命令
    register_commands(app)

    return app


def register_collaborators(app):
    """退款服务与运单号生成器挂在 app.extensions 上，服务层按键取用"""
    from salehub.services.base import CODE_GENERATOR_KEY, REFUND_SERVICE_KEY
    from salehub.services.refund_service import WalletRefundService
    from salehub.utils.codes import RandomCodeGenerator

    app.extensions.setdefault(REFUND_SERVICE_KEY, WalletRefundService())
    app.extensions.setdefault(CODE_GENERATOR_KEY,
                              RandomCodeGenerator(app.config['TRACKING_CODE_LENGTH']))


def register_blueprints(app):
    """注册所有业务模块蓝图"""
    # 认证蓝图
    from salehub.blueprints.auth import auth_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')

    # 订单蓝图 (下单 / 取消 / 退货 / 履约)
    from salehub.blueprints.orders import orders_bp
    app.register_blueprint(orders_bp, url_prefix='/api')


def register_error_handlers(app):
    @app.errorhandler(SaleHubException)
    def handle_salehub_exception(e):
        status = e.code if isinstance(e.code, int) else 400
        return jsonify(e.to_dict()), status

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({'success': False, 'message': e.description, 'code': e.code}), e.code

    @app.errorhandler(500)
    def internal_server_error(e):
        app.logger.error(f'服务器内部错误: {e}')
        return jsonify({'success': False, 'message': '服务器内部错误', 'code': 500}), 500


def register_commands(app):
    """注册 Flask CLI 命令"""
    app.cli.add_command(commands.seed)
    app.cli.add_command(commands.status)
    app.cli.add_command(commands.issue_token)
    app.cli.add_command(commands.orders_cli)
    app.cli.add_command(commands.vouchers_cli)


def configure_logging(app):
    """配置彩色控制台日志，提升开发体验"""
    if app.debug:
        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)

        formatter = colorlog.ColoredFormatter(
            "%(log_color)s[%(asctime)s] %(levelname)-8s%(reset)s %(blue)s%(message)s",
            datefmt="%H:%M:%S",
            reset=True,
            log_colors={
                'DEBUG':    'cyan',
                'INFO':     'green',
                'WARNING':  'yellow',
                'ERROR':    'red',
                'CRITICAL': 'red,bg_white',
            },
            secondary_log_colors={},
            style='%'
        )
        handler.setFormatter(formatter)
        app.logger.addHandler(handler)
        app.logger.setLevel(logging.INFO)
