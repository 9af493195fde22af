# app/services/errors.py
"""
业务异常，由 main.py 中的异常处理器统一转换为 HTTP 响应
"""


class PortalError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(PortalError):
    """缺少必填字段或参数不合法"""
    status_code = 400


class NotAuthenticated(PortalError):
    status_code = 401


class Forbidden(PortalError):
    """调用者不是记录的所有者 / 导师 / 管理员"""
    status_code = 403


class NotFound(PortalError):
    status_code = 404


class Conflict(PortalError):
    """当前状态不允许该操作"""
    status_code = 409


class EmailDeliveryError(Exception):
    """邮件服务未配置或发送失败"""
