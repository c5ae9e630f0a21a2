"""
服务层公共设施
- service_operation: 事务边界，把内部异常统一转换为 Result
- require_user: 身份解析与用户加载
- 可替换的协作者 (退款服务 / 运单号生成器) 注册在 app.extensions 中
"""
from functools import wraps
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from salehub.extensions import db
from salehub.exceptions import ErrorCode, ErrorKind, OrderFailure, Result
from salehub.models import OrderHistory, User

REFUND_SERVICE_KEY = 'salehub.refund_service'
CODE_GENERATOR_KEY = 'salehub.code_generator'


def get_refund_service():
    return current_app.extensions[REFUND_SERVICE_KEY]


def get_code_generator():
    return current_app.extensions[CODE_GENERATOR_KEY]


def service_operation(name):
    """
    事务装饰器
    被装饰函数负责 commit 并返回 Result.ok(...)；任何失败都会回滚整个事务，
    库存与优惠券的扣减不会残留
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except OrderFailure as e:
                db.session.rollback()
                current_app.logger.info(f'{name}: 业务校验失败 {e.code} - {e.message}')
                return e.to_result()
            except StaleDataError as e:
                db.session.rollback()
                current_app.logger.warning(f'{name}: 乐观锁冲突 {e}')
                return Result.fail('数据已被其他请求修改，请刷新后重试',
                                   ErrorKind.CONFLICT, ErrorCode.CONCURRENCY_CONFLICT)
            except SQLAlchemyError as e:
                db.session.rollback()
                current_app.logger.error(f'{name}: 数据库错误 {e}')
                return Result.fail('数据库错误', ErrorKind.DATABASE_ERROR, ErrorCode.DATABASE_ERROR)
        return decorated_function
    return decorator


def require_user(auth):
    """身份缺失 -> TOKEN_INVALID；用户不存在或已封禁 -> USER_NOT_FOUND"""
    if auth is None or not isinstance(auth.user_id, int):
        raise OrderFailure(ErrorCode.TOKEN_INVALID, '身份令牌无效', ErrorKind.UNAUTHORIZED)
    user = db.session.get(User, auth.user_id)
    if user is None or not user.is_active_user:
        raise OrderFailure(ErrorCode.USER_NOT_FOUND, '用户不存在', ErrorKind.NOT_FOUND)
    return user


def validation_error(message):
    return OrderFailure(ErrorCode.VALIDATION_ERROR, message, ErrorKind.VALIDATION)


def parse_id(value, label):
    """正整数 ID；bool 与字符串一律视为非法"""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise validation_error(f'{label} 格式不正确: {value!r}')
    return value


def parse_id_list(values, label):
    if not isinstance(values, (list, tuple)) or not values:
        raise validation_error(f'{label} 不能为空')
    ids = [parse_id(v, label) for v in values]
    if len(set(ids)) != len(ids):
        raise validation_error(f'{label} 存在重复项')
    return ids


def record_history(order_id, from_status, to_status, user_id, note=None,
                   order_shop_id=None, order_item_id=None):
    """写入状态流转记录 (随外层事务一起提交)"""
    history = OrderHistory(
        order_id=order_id,
        order_shop_id=order_shop_id,
        order_item_id=order_item_id,
        from_status=from_status,
        to_status=to_status,
        changed_by_id=user_id,
        note=note,
    )
    db.session.add(history)
    return history


REASON_MAX_LENGTH = 255


def parse_reason(value, label='reason'):
    """备注/原因：None 或不超过 255 个字符的字符串"""
    if value is None:
        return None
    if not isinstance(value, str):
        raise validation_error(f'{label} 必须是字符串')
    if len(value) > REASON_MAX_LENGTH:
        raise validation_error(f'{label} 不能超过 {REASON_MAX_LENGTH} 个字符')
    return value
