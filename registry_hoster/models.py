"""
Registry Hoster 数据模型
"""

import ipaddress
from dataclasses import dataclass, field
from typing import List, Optional

from registry_hoster.errors import LineParseError

COMMENT_CHAR = "#"


@dataclass
class HostsLine:
    """
    代表 hosts 文件中的一行

    属性:
        raw: 原始文本，未修改时可逐字节还原该行
        address: 第一个字段（仅非注释、非空行）
        hostnames: 映射到 address 的主机名，保持原有顺序
        parse_error: 第一个字段不是合法 IP 时设置，该行保留但不参与地址查找
    """

    raw: str
    address: Optional[str] = None
    hostnames: List[str] = field(default_factory=list)
    parse_error: Optional[LineParseError] = None

    @classmethod
    def parse(cls, raw: str) -> "HostsLine":
        """
        解析 hosts 文件中的一行

        解析失败不会抛出异常，错误记录在 parse_error 中。

        参数:
            raw: 原始行文本（不含换行符）

        返回:
            HostsLine 对象
        """
        line = cls(raw=raw)
        fields = raw.split()
        if not fields or line.is_comment:
            return line

        line.address = fields[0]
        line.hostnames = fields[1:]
        try:
            ipaddress.ip_address(fields[0])
        except ValueError:
            line.parse_error = LineParseError(f"错误的 hosts 行: {raw!r}")

        return line

    @classmethod
    def from_mapping(cls, address: str, hostnames: List[str]) -> "HostsLine":
        """由地址和主机名列表构建新行"""
        return cls.parse(" ".join([address] + list(hostnames)))

    @property
    def is_comment(self) -> bool:
        return self.raw.strip().startswith(COMMENT_CHAR)

    @property
    def is_blank(self) -> bool:
        return not self.raw.strip()

    def __str__(self) -> str:
        return self.raw


@dataclass(frozen=True)
class ResolvedEndpoint:
    """
    一次同步周期解析出的端点，不做持久化

    属性:
        address: 镜像仓库当前可达的 IP 地址
        hostname: 要映射的主机名
    """

    address: str
    hostname: str

    def to_hosts_line(self) -> str:
        """
        转换为 hosts 文件行格式

        格式: <IP> <主机名>
        """
        return f"{self.address} {self.hostname}"

    def __str__(self) -> str:
        return f"{self.hostname} -> {self.address}"


@dataclass(frozen=True)
class ProcessRecord:
    """
    集群查询返回的单个候选进程

    属性:
        host_ip: 进程所在主机的 IP，可能为空
        ready: 是否处于就绪状态
        name: 进程名称，仅用于日志
    """

    host_ip: str
    ready: bool
    name: str = ""
