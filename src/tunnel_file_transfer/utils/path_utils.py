"""
路径处理工具模块
================

把对端传来的相对路径限制在服务根目录内，并提供文件名清理和冲突解决功能。
"""

import os
import re
from pathlib import Path
from typing import Union

from ..core.exceptions import PathSecurityError
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Windows 与 POSIX 文件名中都不允许出现的字符，以及控制字符
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')

MAX_FILENAME_LENGTH = 255


def normalize_path(path_str: str) -> str:
    """
    标准化对端传来的相对路径

    删除所有 ".." 序列，统一为正斜杠，合并多余斜杠并移除开头的斜杠。

    Args:
        path_str: 原始路径字符串

    Returns:
        标准化后的路径字符串
    """
    normalized = path_str.replace("..", "")

    # 将所有路径分隔符统一为正斜杠
    normalized = normalized.replace("\\", "/")

    # 移除多余的斜杠
    normalized = re.sub(r"/+", "/", normalized)

    # 移除开头的斜杠（相对路径）
    return normalized.lstrip("/")


def is_within(path: Path, root: Path) -> bool:
    """
    判断 path 是否位于 root 目录内（按路径组件比较，而非字符串前缀）

    Args:
        path: 已规范化的绝对路径
        root: 已规范化的根目录

    Returns:
        path 等于 root 或是其子孙路径时返回True
    """
    return path == root or root in path.parents


def resolve_path(root: Union[str, Path], relative_path: str) -> Path:
    """
    将相对路径解析为根目录内的绝对路径

    Args:
        root: 服务根目录
        relative_path: 对端提供的相对路径

    Returns:
        规范化后的绝对路径

    Raises:
        PathSecurityError: 路径包含空字符或上级目录引用，或解析结果位于根目录之外
    """
    if "\x00" in relative_path:
        logger.warning(f"拒绝包含空字符的路径: {relative_path!r}")
        raise PathSecurityError(f"路径包含空字符: {relative_path!r}")

    components = relative_path.replace("\\", "/").split("/")
    if ".." in components:
        logger.warning(f"拒绝包含上级目录引用的路径: {relative_path!r}")
        raise PathSecurityError(f"检测到路径穿越: {relative_path}")

    safe_path = normalize_path(relative_path)

    root_path = Path(root).resolve()
    resolved = (root_path / safe_path).resolve()

    # 符号链接可能把路径带到根目录之外，以规范化结果为准
    if not is_within(resolved, root_path):
        logger.warning(f"拒绝根目录之外的路径: {relative_path!r} -> {resolved}")
        raise PathSecurityError(f"检测到路径穿越: {relative_path}")

    return resolved


def sanitize_filename(filename: str) -> str:
    """
    清理文件名，只保留基本名并替换不安全的字符

    Args:
        filename: 原始文件名，可能带有目录部分

    Returns:
        清理后的安全文件名

    Raises:
        ValueError: 清理后文件名为空或只包含空白
    """
    # 同时按两种分隔符取基本名
    base_name = filename.replace("\\", "/").rsplit("/", 1)[-1]

    if not base_name.strip() or base_name in (".", ".."):
        raise ValueError(f"无效的文件名: {filename!r}")

    safe_filename = _INVALID_FILENAME_CHARS.sub("_", base_name)

    # 限制文件名长度（常见文件系统限制为255字符）
    if len(safe_filename) > MAX_FILENAME_LENGTH:
        name, ext = os.path.splitext(safe_filename)
        safe_filename = name[: MAX_FILENAME_LENGTH - len(ext)] + ext

    return safe_filename


def unique_destination(file_path: Path, allow_overwrite: bool) -> Path:
    """
    解决文件名冲突

    允许覆盖或文件不存在时原样返回，否则在扩展名前追加 _1、_2 ……
    检查与创建之间存在竞争窗口，结果只是尽力而为。

    Args:
        file_path: 目标文件路径
        allow_overwrite: 是否允许覆盖

    Returns:
        解决冲突后的文件路径
    """
    if allow_overwrite or not file_path.exists():
        return file_path

    stem = file_path.stem
    suffix = file_path.suffix
    parent = file_path.parent

    counter = 1
    while True:
        new_path = parent / f"{stem}_{counter}{suffix}"
        if not new_path.exists():
            logger.info(f"文件冲突解决: {file_path.name} -> {new_path.name}")
            return new_path
        counter += 1
