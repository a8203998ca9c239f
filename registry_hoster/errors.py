"""
Registry Hoster 异常定义

每个异常类都带有 kind 属性，日志中以 error_kind 字段输出，便于分类监控。
"""


class HosterError(Exception):
    """所有 Registry Hoster 异常的基类"""

    kind = "HosterError"


class ResolutionNotFound(HosterError):
    """没有找到任何处于就绪状态的镜像仓库端点"""

    kind = "ResolutionNotFound"


class QueryFailure(HosterError):
    """集群查询失败（API 或传输层错误）"""

    kind = "QueryFailure"


class StructuralIntegrityError(HosterError):
    """hosts 文件中存在段开始标记但缺少结束标记"""

    kind = "StructuralIntegrity"


class HostsIOError(HosterError):
    """hosts 文件读写失败"""

    kind = "IOFailure"


class LineParseError(HosterError):
    """非注释行的第一个字段不是合法的 IP 地址"""

    kind = "LineParseError"
