class ErrorKind:
    """错误大类 (决定 HTTP 状态码)"""
    UNAUTHORIZED = 'unauthorized'
    NOT_FOUND = 'not_found'
    CONFLICT = 'conflict'
    VALIDATION = 'validation'
    DATABASE_ERROR = 'database_error'

    HTTP_STATUS = {
        UNAUTHORIZED: 401,
        NOT_FOUND: 404,
        CONFLICT: 409,
        VALIDATION: 400,
        DATABASE_ERROR: 500,
    }


class ErrorCode:
    """稳定的错误码，API 调用方可按此分支处理"""
    TOKEN_INVALID = 'TOKEN_INVALID'
    USER_NOT_FOUND = 'USER_NOT_FOUND'
    ROLE_NOT_PERMITTED = 'ROLE_NOT_PERMITTED'
    NOT_PERMITTED = 'NOT_PERMITTED'
    VALIDATION_ERROR = 'VALIDATION_ERROR'

    CART_ITEM_NOT_FOUND = 'CART_ITEM_NOT_FOUND'
    ADDRESS_NOT_FOUND = 'ADDRESS_NOT_FOUND'
    SHOP_NOT_FOUND = 'SHOP_NOT_FOUND'
    OUT_OF_STOCK = 'OUT_OF_STOCK'
    INSUFFICIENT_STOCK = 'INSUFFICIENT_STOCK'

    VOUCHER_NOT_FOUND = 'VOUCHER_NOT_FOUND'
    VOUCHER_NOT_APPLICABLE = 'VOUCHER_NOT_APPLICABLE'
    VOUCHER_EXPIRED = 'VOUCHER_EXPIRED'
    MIN_SPEND_NOT_MET = 'MIN_SPEND_NOT_MET'

    ORDER_NOT_FOUND = 'ORDER_NOT_FOUND'
    ORDER_SHOP_NOT_FOUND = 'ORDER_SHOP_NOT_FOUND'
    ORDER_ITEM_NOT_FOUND = 'ORDER_ITEM_NOT_FOUND'
    STATUS_INVALID = 'STATUS_INVALID'
    CANCEL_REQUEST_NOT_FOUND = 'CANCEL_REQUEST_NOT_FOUND'

    RETURN_PERIOD_EXPIRED = 'RETURN_PERIOD_EXPIRED'
    QUANTITY_RETURN_INVALID = 'QUANTITY_RETURN_INVALID'
    RETURN_ORDER_NOT_FOUND = 'RETURN_ORDER_NOT_FOUND'
    RETURN_ORDER_ITEM_NOT_FOUND = 'RETURN_ORDER_ITEM_NOT_FOUND'

    REFUND_FAILED = 'REFUND_FAILED'
    CONCURRENCY_CONFLICT = 'CONCURRENCY_CONFLICT'
    DATABASE_ERROR = 'DATABASE_ERROR'


class SaleHubException(Exception):
    """SaleHub 系统基础异常类"""
    def __init__(self, message, code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['success'] = False
        return rv


class OrderFailure(SaleHubException):
    """
    订单引擎业务失败
    仅在服务内部抛出，由服务的公开方法转换为 Result，不会越过服务边界
    """
    def __init__(self, error_code, message, kind=ErrorKind.CONFLICT, payload=None):
        super().__init__(message, code=error_code, payload=payload)
        self.kind = kind

    def to_result(self):
        return Result.fail(self.message, self.kind, self.code)


class Result:
    """
    服务调用结果：成功时携带 value，失败时携带 error / kind / code
    """
    __slots__ = ('success', 'value', 'error', 'kind', 'code')

    def __init__(self, success, value=None, error=None, kind=None, code=None):
        self.success = success
        self.value = value
        self.error = error
        self.kind = kind
        self.code = code

    @classmethod
    def ok(cls, value=None):
        return cls(True, value=value)

    @classmethod
    def fail(cls, error, kind=ErrorKind.CONFLICT, code=None):
        return cls(False, error=error, kind=kind, code=code)

    @property
    def http_status(self):
        if self.success:
            return 200
        return ErrorKind.HTTP_STATUS.get(self.kind, 400)

    def to_dict(self):
        if self.success:
            return {'success': True, 'data': self.value}
        return {
            'success': False,
            'message': self.error,
            'kind': self.kind,
            'code': self.code,
        }

    def __bool__(self):
        return self.success

    def __repr__(self):
        if self.success:
            return f'<Result ok {self.value!r}>'
        return f'<Result {self.kind}:{self.code} {self.error}>'
