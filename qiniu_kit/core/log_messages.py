"""
日志消息模板模块
统一管理所有客户端日志消息模板，便于维护和国际化
"""

from typing import Dict, Any


class LogMessages:
    """日志消息模板类"""

    # ==================== 通用日志消息 ====================
    OPERATION_SUCCESS = "操作成功完成: {operation_name}"

    # ==================== 七牛接口调用 ====================
    QINIU_CALL_FAILED = "[qiniu] {component}.{method} error: {cause}"
    QINIU_CALL_RESPONSE = "[qiniu] {component}.{method} respBody: {resp_body} respInfo: {resp_info}"

    @classmethod
    def format_message(cls, message_template: str, **kwargs: Any) -> str:
        """格式化日志消息模板"""
        return message_template.format(**kwargs)

    @classmethod
    def get_structured_data(cls, **kwargs: Any) -> Dict[str, Any]:
        """获取结构化日志数据"""
        return kwargs


# 全局实例
log_messages = LogMessages()
