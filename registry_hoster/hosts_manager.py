"""
Hosts 文件管理模块，维护由本程序管理的唯一一段条目
"""

import errno
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

from registry_hoster.errors import HostsIOError, StructuralIntegrityError
from registry_hoster.models import HostsLine

START_OF_SECTION = "# Generate by Rainbond. DO NOT EDIT"
END_OF_SECTION = "# End of Section"
EOL = "\n"

DEFAULT_HOSTS_PATH = "/etc/hosts"

# 非 UTF-8 字节以代理字符读入，写回时还原为原始字节
FILE_ENCODING = {"encoding": "utf-8", "errors": "surrogateescape", "newline": "\n"}


class HostsDocument:
    """
    hosts 文件在内存中的有序表示

    行序列始终对应最后一次成功的 load 或 flush。
    本类不加锁：同步引擎是唯一的持有者和写入者。
    """

    def __init__(self, hosts_path: str, logger: logging.Logger, load: bool = True):
        """
        初始化 hosts 文档

        参数:
            hosts_path: hosts 文件路径
            logger: 日志记录器实例
            load: 是否立即从磁盘加载

        异常:
            HostsIOError: 如果文件不存在或不可读
        """
        self.hosts_path = Path(hosts_path)
        self.logger = logger
        self.lines: List[HostsLine] = []

        if load:
            self.load()

    def load(self) -> None:
        """
        从磁盘逐行读取并解析 hosts 文件

        文件不存在时不会自动创建。

        异常:
            HostsIOError: 如果文件无法打开或读取
        """
        try:
            with open(self.hosts_path, 'r', **FILE_ENCODING) as f:
                lines = [HostsLine.parse(raw.rstrip('\r\n')) for raw in f]
        except (OSError, UnicodeError) as e:
            raise HostsIOError(f"读取 hosts 文件失败 {self.hosts_path}: {e}") from e

        for line in lines:
            if line.parse_error is not None:
                self.logger.debug(f"{line.parse_error}，已原样保留")

        self.lines = lines

    def find_address(self, address: str) -> int:
        """
        查找映射指定地址的行

        注释行、空行以及解析失败的行不参与查找。

        返回:
            行索引，未找到返回 -1
        """
        for index, line in enumerate(self.lines):
            if line.is_comment or line.is_blank or line.parse_error is not None:
                continue
            if line.address == address:
                return index
        return -1

    def add_address_mapping(self, address: str, *hostnames: str) -> None:
        """
        添加地址映射

        地址已存在时在原位置追加缺少的主机名，否则在末尾追加新行。
        不会产生重复的地址条目。

        参数:
            address: IP 地址
            hostnames: 要映射的主机名
        """
        position = self.find_address(address)
        if position == -1:
            new_hostnames: List[str] = []
            for hostname in hostnames:
                if hostname not in new_hostnames:
                    new_hostnames.append(hostname)
            self.lines.append(HostsLine.from_mapping(address, new_hostnames))
            return

        new_hostnames = list(self.lines[position].hostnames)
        for hostname in hostnames:
            if hostname not in new_hostnames:
                new_hostnames.append(hostname)
        self.lines[position] = HostsLine.from_mapping(address, new_hostnames)

    def append_raw_lines(self, *lines: str) -> None:
        """原样追加若干完整的行"""
        for raw in lines:
            self.lines.append(HostsLine.parse(raw))

    def _section_bounds(self) -> Optional[tuple]:
        """
        定位管理段

        返回:
            (start, end) 索引（均包含在段内），没有管理段时返回 None

        异常:
            StructuralIntegrityError: 找到开始标记但其后没有结束标记
        """
        start = -1
        for index, line in enumerate(self.lines):
            if line.raw == START_OF_SECTION:
                start = index
                break
        if start == -1:
            return None

        for index in range(start + 1, len(self.lines)):
            if self.lines[index].raw == END_OF_SECTION:
                return start, index

        raise StructuralIntegrityError(
            f"hosts 文件损坏 {self.hosts_path}: "
            f"第 {start + 1} 行有段开始标记，但没有段结束标记"
        )

    def managed_section(self) -> Optional[List[str]]:
        """
        返回管理段内（不含标记）的原始行

        返回:
            行列表，没有管理段时返回 None
        """
        bounds = self._section_bounds()
        if bounds is None:
            return None
        start, end = bounds
        return [line.raw for line in self.lines[start + 1:end]]

    def cleanup_managed_section(self) -> None:
        """
        移除管理段（包含开始和结束标记）

        没有管理段时什么也不做。损坏的管理段不会被自动修复。

        异常:
            StructuralIntegrityError: 找到开始标记但没有结束标记
        """
        bounds = self._section_bounds()
        if bounds is None:
            return

        start, end = bounds
        self.lines = self.lines[:start] + self.lines[end + 1:]
        self.logger.debug(f"已移除管理段（第 {start + 1}-{end + 1} 行）")

    def render(self) -> str:
        """将内存中的行序列渲染为文件内容，每行以换行符结尾"""
        return "".join(line.raw + EOL for line in self.lines)

    def flush(self) -> None:
        """
        将内存中的行序列完整写回磁盘，然后立即重新加载

        写入失败时不会重新加载，内存状态保持不变。

        异常:
            HostsIOError: 如果写入或重新加载失败
        """
        content = self.render()
        try:
            self._write(content)
        except (OSError, UnicodeError) as e:
            raise HostsIOError(f"写入 hosts 文件失败 {self.hosts_path}: {e}") from e

        self.load()

    def _write(self, content: str) -> None:
        """
        原子性写入：临时文件（同一目录）+ 重命名

        bind mount 的文件无法被替换，此时退回到原地截断重写。
        """
        temp_fd, temp_path = tempfile.mkstemp(
            dir=self.hosts_path.parent,
            prefix='.hosts.tmp.',
            text=True
        )

        try:
            with os.fdopen(temp_fd, 'w', **FILE_ENCODING) as f:
                f.write(content)
            # mkstemp 创建的文件权限为 0600
            if self.hosts_path.exists():
                shutil.copymode(self.hosts_path, temp_path)
            else:
                os.chmod(temp_path, 0o644)

            try:
                os.replace(temp_path, self.hosts_path)
                return
            except OSError as e:
                if e.errno not in (errno.EBUSY, errno.EXDEV):
                    raise
                self.logger.debug(
                    f"无法替换 {self.hosts_path}（{e.strerror}），改为原地写入"
                )
        finally:
            if os.path.exists(temp_path):
                os.unlink(temp_path)

        with open(self.hosts_path, 'w', **FILE_ENCODING) as f:
            f.write(content)
