from flask import request, jsonify, current_app

from salehub.blueprints.auth import auth_bp
from salehub.exceptions import ErrorCode, ErrorKind, Result
from salehub.models import User
from salehub.utils.security import generate_token


@auth_bp.route('/token', methods=['POST'])
def issue_token():
    """邮箱 + 密码换取 Bearer 令牌"""
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''

    user = User.query.filter_by(email=email).first() if email else None

    # 1. 用户不存在或密码错误，统一返回凭证无效
    if user is None or not user.verify_password(password):
        current_app.logger.info(f'issue_token: 登录失败 {email}')
        result = Result.fail('无效的凭证', ErrorKind.UNAUTHORIZED, ErrorCode.TOKEN_INVALID)
        return jsonify(result.to_dict()), result.http_status

    # 2. 被封禁用户不签发令牌
    if not user.is_active_user:
        result = Result.fail('该账户已被锁定', ErrorKind.NOT_FOUND, ErrorCode.USER_NOT_FOUND)
        return jsonify(result.to_dict()), result.http_status

    result = Result.ok({
        'token': generate_token(user),
        'user_id': user.id,
        'roles': sorted(user.role_names),
    })
    return jsonify(result.to_dict()), result.http_status
