"""
镜像仓库端点解析模块
"""

import logging

from registry_hoster.errors import ResolutionNotFound
from registry_hoster.models import ResolvedEndpoint
from registry_hoster.query import ProcessQuery


class EndpointResolver:
    """
    从集群状态中找出镜像仓库当前可达的地址

    按查询返回的顺序取第一个就绪的进程，不做负载均衡或延迟排序。
    查询失败原样向上传播，不在内部重试。
    """

    def __init__(self, query: ProcessQuery, logger: logging.Logger):
        """
        参数:
            query: 集群查询实现
            logger: 日志记录器实例
        """
        self.query = query
        self.logger = logger

    def resolve_endpoint(self, namespace: str, selector: str) -> str:
        """
        返回第一个就绪进程的主机 IP

        参数:
            namespace: 命名空间
            selector: 标签选择器

        返回:
            IP 地址

        异常:
            ResolutionNotFound: 没有进程或没有就绪的进程
            QueryFailure: 集群查询失败
        """
        processes = self.query.list_matching_processes(namespace, selector)

        for process in processes:
            if not process.ready:
                self.logger.debug(f"{process.name} 未就绪，跳过")
                continue
            if not process.host_ip:
                self.logger.debug(f"{process.name} 已就绪但没有地址，跳过")
                continue
            return process.host_ip

        raise ResolutionNotFound(
            f"未找到镜像仓库地址: {namespace}/{selector} "
            f"（{len(processes)} 个候选，均未就绪）"
        )

    def resolve(self, namespace: str, selector: str, hostname: str) -> ResolvedEndpoint:
        """解析端点并与目标主机名配对"""
        address = self.resolve_endpoint(namespace, selector)
        return ResolvedEndpoint(address=address, hostname=hostname)
