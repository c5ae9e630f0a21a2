"""
安全工具函数
签发与解析 API 身份令牌 (itsdangerous 签名，随 Flask 一同安装)
"""
from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

TOKEN_SALT = 'salehub-auth'


def _serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=TOKEN_SALT)


def generate_token(user):
    """为用户签发令牌，载荷只包含用户 ID"""
    return _serializer().dumps({'uid': user.id})


def resolve_token(token):
    """
    解析令牌并返回用户 ID
    令牌缺失、签名错误、过期或载荷格式不对时一律返回 None
    """
    if not token:
        return None
    try:
        payload = _serializer().loads(token, max_age=current_app.config.get('TOKEN_MAX_AGE'))
    except SignatureExpired:
        current_app.logger.info('resolve_token: 令牌已过期')
        return None
    except BadSignature:
        current_app.logger.warning('resolve_token: 令牌签名无效')
        return None

    uid = payload.get('uid') if isinstance(payload, dict) else None
    if not isinstance(uid, int) or isinstance(uid, bool):
        return None
    return uid
