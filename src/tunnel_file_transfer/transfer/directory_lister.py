"""
目录列表模块
============

枚举服务目录下某个目录的直接子项，目录在前，文件在后。
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Union

from ..config.constants import EntryType
from ..core.messages import DirectoryEntry, DirectoryListing
from ..utils.logger import get_logger
from ..utils.path_utils import resolve_path

logger = get_logger(__name__)


def list_directory(root: Union[str, Path], relative_path: str = "") -> DirectoryListing:
    """
    列出目录内容

    不递归，不排序：每组内部保持文件系统枚举顺序。
    正在接收中的 .tmp 临时文件同样会被列出。

    Args:
        root: 服务根目录
        relative_path: 相对目录，空字符串表示根目录

    Returns:
        目录列表；目录不存在时返回空列表

    Raises:
        PathSecurityError: 相对路径超出根目录
    """
    search_path = resolve_path(root, relative_path) if relative_path else Path(root)

    if not search_path.is_dir():
        logger.debug(f"目录不存在: {search_path}")
        return DirectoryListing()

    directories = []
    files = []
    with os.scandir(search_path) as it:
        for entry in it:
            try:
                stat = entry.stat()
                if entry.is_dir():
                    directories.append(
                        DirectoryEntry(
                            EntryType.DIR,
                            entry.name,
                            0,
                            datetime.fromtimestamp(stat.st_mtime),
                        )
                    )
                elif entry.is_file():
                    files.append(
                        DirectoryEntry(
                            EntryType.FILE,
                            entry.name,
                            stat.st_size,
                            datetime.fromtimestamp(stat.st_mtime),
                        )
                    )
            except OSError as e:
                # 枚举期间被删除或无权限访问的条目直接跳过
                logger.warning(f"跳过无法读取的条目 {entry.name}: {e}")

    return DirectoryListing(directories + files)
