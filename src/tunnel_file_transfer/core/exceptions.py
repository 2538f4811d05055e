"""
异常定义
========

传输过程中可能出现的所有错误类型。
"""


class TransferError(Exception):
    """所有传输相关异常的基类"""


class ProtocolError(TransferError):
    """头部格式错误、命令不符合预期或缺少DATA:分隔行"""


class PathSecurityError(TransferError):
    """解析后的路径超出了服务根目录"""


class SizeLimitExceeded(TransferError):
    """声明或实际的文件大小超过配置上限"""

    def __init__(self, size: int, limit: int):
        super().__init__(f"文件过大: {size} 字节 (上限: {limit} 字节)")
        self.size = size
        self.limit = limit


class TransferIncompleteError(TransferError):
    """数据流在达到预期大小之前结束"""

    def __init__(self, bytes_received: int, expected_bytes: int):
        super().__init__(
            f"传输不完整: 已接收 {bytes_received} / {expected_bytes} 字节"
        )
        self.bytes_received = bytes_received
        self.expected_bytes = expected_bytes


class NotFound(TransferError):
    """请求的文件不存在"""


class AlreadyExists(TransferError):
    """目标文件已存在且不允许覆盖"""


class ConnectionClosed(TransferError):
    """对端在握手完成前关闭了连接"""


class OperationCancelled(TransferError):
    """操作被取消（用户中断或超时）"""


class StallTimeout(OperationCancelled):
    """单次写入未在限定时间内完成，对端停止响应"""


class HandshakeTimeout(OperationCancelled):
    """等待回复头部或DATA:分隔行超时"""


class RemoteError(TransferError):
    """对端以 Error 消息回复"""
