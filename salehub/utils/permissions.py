"""
权限控制工具
身份在 HTTP 边界只解析一次，得到显式的 AuthContext 传入服务层；
服务层在事务中不再回查角色
"""
from dataclasses import dataclass, field
from functools import wraps
from flask import jsonify
from flask_login import current_user

from salehub.exceptions import ErrorCode, ErrorKind, Result


@dataclass(frozen=True)
class AuthContext:
    """已认证请求的身份快照"""
    user_id: int
    roles: frozenset = field(default_factory=frozenset)

    @classmethod
    def from_user(cls, user):
        return cls(user_id=user.id, roles=user.role_names)

    def has_role(self, role):
        return role in self.roles


def current_auth():
    """从 Flask-Login 当前用户构造 AuthContext，未认证返回 None"""
    if not current_user.is_authenticated:
        return None
    return AuthContext.from_user(current_user)


def role_required(role):
    """
    角色检查装饰器 (仅用于路由层的快速拒绝，服务层仍会自行校验)

    用法:
        @role_required(Role.SELLER)
        def approve_return():
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                result = Result.fail('身份令牌无效', ErrorKind.UNAUTHORIZED, ErrorCode.TOKEN_INVALID)
                return jsonify(result.to_dict()), result.http_status
            if not current_user.has_role(role):
                result = Result.fail('当前角色无权执行此操作', ErrorKind.UNAUTHORIZED,
                                     ErrorCode.ROLE_NOT_PERMITTED)
                return jsonify(result.to_dict()), result.http_status
            return f(*args, **kwargs)
        return decorated_function
    return decorator
