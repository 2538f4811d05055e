"""
系统常量定义
============

定义隧道文件传输协议中使用的各种常量。
"""

from enum import Enum
from typing import Final


class ProtocolCommand(str, Enum):
    """协议命令字枚举（线上以字符串形式传输）"""

    SEND = "Send"  # 发送方声明随后有二进制数据
    REQUEST = "Request"  # 请求对端发送文件
    LIST_DIR = "ListDir"  # 请求对端列出目录
    ERROR = "Error"  # 错误回复


class EntryType(str, Enum):
    """目录项类型"""

    FILE = "File"
    DIR = "Dir"


# 数据帧格式定义
DATA_MARKER: Final[str] = "DATA:"  # 头部与二进制数据之间的分隔行
LINE_TERMINATOR: Final[bytes] = b"\n"
LINE_ENCODING: Final[str] = "utf-8"

# 网络配置默认值
DEFAULT_HOST: Final[str] = "127.0.0.1"  # SSH隧道本地端点
DEFAULT_PORT: Final[int] = 53690
PORT_ENV_VAR: Final[str] = "SX_PORT"  # 客户端目标端口环境变量

# 传输配置默认值
CHUNK_SIZE: Final[int] = 8192  # 单次拷贝块大小(8KB)
PROGRESS_THRESHOLD: Final[int] = 100 * 1024  # 超过100KB才显示进度
DEFAULT_MAX_FILE_SIZE: Final[int] = 10 * 1024 * 1024 * 1024  # 10GB
TEMP_SUFFIX: Final[str] = ".tmp"  # 接收中的临时文件后缀

# 超时配置(秒)
WRITE_TIMEOUT: Final[float] = 1.0  # 单次写入超时，超时视为对端停止响应
RESPONSE_TIMEOUT: Final[float] = 3.0  # 等待首个回复行
DATA_TIMEOUT: Final[float] = 1.0  # 等待DATA:分隔行
POLL_INTERVAL: Final[float] = 0.2  # 阻塞调用检查取消信号的间隔
SHUTDOWN_GRACE_PERIOD: Final[float] = 2.0  # 服务器关闭时等待处理线程的时间

# 退出码
EXIT_SUCCESS: Final[int] = 0
EXIT_FAILURE: Final[int] = 1
EXIT_CANCELLED: Final[int] = 130  # 与Ctrl+C的惯例一致

# 文件大小单位
SIZE_UNITS: Final[dict] = {
    "KB": 1024,
    "MB": 1024 * 1024,
    "GB": 1024 * 1024 * 1024,
}
