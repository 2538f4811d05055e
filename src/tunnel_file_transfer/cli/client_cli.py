"""
客户端命令行接口
================

download / upload / list 三个操作，错误统一映射为可读消息和退出码。
"""

from typing import Callable, Optional

from ..config.constants import EXIT_CANCELLED, EXIT_FAILURE, EXIT_SUCCESS, EntryType
from ..config.settings import ClientConfig
from ..core.cancellation import CancellationToken
from ..core.exceptions import OperationCancelled, TransferError
from ..core.messages import DirectoryListing
from ..transfer.client import FileTransferClient
from ..utils.logger import get_logger
from ..utils.progress import format_bytes, format_relative_date

logger = get_logger(__name__)


class ClientCLI:
    """客户端命令行接口"""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        client: Optional[FileTransferClient] = None,
    ):
        self.config = config or ClientConfig.from_env()
        self.token = CancellationToken()
        self.client = client or FileTransferClient(self.config, self.token)

    def _execute(self, operation: Callable[[], int], failure_title: str) -> int:
        """
        执行一次操作并把异常映射为退出码

        Args:
            operation: 无参操作，返回退出码
            failure_title: 失败时的提示前缀

        Returns:
            退出码
        """
        try:
            return operation()
        except KeyboardInterrupt:
            self.token.cancel("用户中断")
            print("\n⏹️  操作已被用户取消")
            return EXIT_CANCELLED
        except OperationCancelled as e:
            if self.token.is_cancelled:
                print("\n⏹️  操作已被用户取消")
                return EXIT_CANCELLED
            print(f"\n❌ {failure_title}: {e}")
            return EXIT_FAILURE
        except TransferError as e:
            print(f"\n❌ {failure_title}: {e}")
            return EXIT_FAILURE
        except (ConnectionRefusedError, TimeoutError) as e:
            print(f"\n❌ 无法连接到端口 {self.config.port} 上的服务端: {e}")
            return EXIT_FAILURE
        except (OSError, ValueError) as e:
            logger.debug(f"{failure_title}: {e!r}")
            print(f"\n❌ {failure_title}: {e}")
            return EXIT_FAILURE

    def download(self, remote_path: str, local_name: Optional[str] = None) -> int:
        """下载文件"""

        def _run() -> int:
            print(f"📥 请求下载: {remote_path}")
            result = self.client.download(remote_path, local_name)
            print(f"📊 大小: {format_bytes(result.size)}")
            print(f"✅ 下载完成！文件保存为: {result.path}")
            return EXIT_SUCCESS

        return self._execute(_run, "下载失败")

    def upload(self, local_file: str) -> int:
        """上传文件"""

        def _run() -> int:
            print(f"📤 请求上传: {local_file}")
            result = self.client.upload(local_file)
            print(f"📊 大小: {format_bytes(result.size)}")
            print("✅ 上传完成！")
            return EXIT_SUCCESS

        return self._execute(_run, "上传失败")

    def list(self, remote_path: str = "") -> int:
        """列出服务端目录"""

        def _run() -> int:
            listing = self.client.list_dir(remote_path)
            print(f"📂 目录: /{remote_path}")
            print(render_listing(listing))
            return EXIT_SUCCESS

        return self._execute(_run, "目录列表失败")


def render_listing(listing: DirectoryListing) -> str:
    """
    把目录列表渲染为纯文本表格

    Args:
        listing: 目录列表

    Returns:
        表格文本
    """
    if not listing.entries:
        return "没有文件或目录"

    rows = [("类型", "名称", "大小", "修改时间")]
    for entry in listing.entries:
        modified = format_relative_date(entry.modify_date) if entry.modify_date else "-"
        if entry.type == EntryType.DIR:
            rows.append(("DIR", entry.name + "/", "-", modified))
        else:
            rows.append(("FILE", entry.name, format_bytes(entry.size), modified))

    widths = [max(len(row[i]) for row in rows) for i in range(4)]
    lines = ["  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip() for row in rows]
    lines.insert(1, "  ".join("-" * width for width in widths))
    return "\n".join(lines)
