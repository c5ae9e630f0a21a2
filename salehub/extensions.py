from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager

# 初始化扩展对象 (暂不绑定 app)
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()

# API 模式：不做页面跳转，未认证统一由 unauthorized_handler 返回 401
login_manager.session_protection = None


@login_manager.request_loader
def load_user_from_request(request):
    """
    Flask-Login 请求加载回调
    从 Authorization: Bearer <token> 中解析用户，解析失败一律返回 None (fail closed)
    """
    from salehub.models import User
    from salehub.utils.security import resolve_token

    header = request.headers.get('Authorization', '')
    if not header.startswith('Bearer '):
        return None
    user_id = resolve_token(header[len('Bearer '):].strip())
    if user_id is None:
        return None
    return db.session.get(User, user_id)


@login_manager.unauthorized_handler
def unauthorized():
    from flask import jsonify
    from salehub.exceptions import ErrorCode, ErrorKind, Result
    result = Result.fail('身份令牌无效', ErrorKind.UNAUTHORIZED, ErrorCode.TOKEN_INVALID)
    return jsonify(result.to_dict()), 401
