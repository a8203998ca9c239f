"""
集群查询模块：列出匹配标签选择器的候选进程
"""

import logging
from typing import Dict, List

import docker
from docker.errors import DockerException
from docker.models.containers import Container
from kubernetes.client import ApiException, CoreV1Api
from urllib3.exceptions import HTTPError

from registry_hoster.errors import QueryFailure
from registry_hoster.models import ProcessRecord


def parse_selector(selector: str) -> Dict[str, str]:
    """
    解析基于等值的标签选择器 (k=v,k2=v2)

    参数:
        selector: 标签选择器字符串

    返回:
        标签键值字典

    异常:
        ValueError: 如果选择器中包含不支持的语法
    """
    result: Dict[str, str] = {}
    for part in selector.split(","):
        part = part.strip()
        if not part:
            continue
        if "!=" in part or "=" not in part:
            raise ValueError(f"不支持的标签选择器: {part!r}")
        key, value = part.split("=", 1)
        key = key.strip()
        value = value.strip().lstrip("=").strip()
        if not key:
            raise ValueError(f"标签选择器缺少键: {part!r}")
        result[key] = value
    return result


class ProcessQuery:
    """集群查询接口"""

    def list_matching_processes(self, namespace: str, selector: str) -> List[ProcessRecord]:
        """
        列出 namespace 中匹配 selector 的所有进程

        异常:
            QueryFailure: 如果查询失败
        """
        raise NotImplementedError


class KubernetesPodQuery(ProcessQuery):
    """
    通过 Kubernetes API 查询 Pod

    就绪状态取自 Pod 的 Ready condition，地址取自 status.host_ip。
    """

    def __init__(self, core_api: CoreV1Api, logger: logging.Logger, timeout: float = 10):
        """
        参数:
            core_api: Kubernetes CoreV1Api 实例
            logger: 日志记录器实例
            timeout: 单次查询的超时时间（秒）
        """
        self.core_api = core_api
        self.logger = logger
        self.timeout = timeout

    def list_matching_processes(self, namespace: str, selector: str) -> List[ProcessRecord]:
        try:
            pods = self.core_api.list_namespaced_pod(
                namespace=namespace,
                label_selector=selector,
                _request_timeout=self.timeout,
            )
        except ApiException as e:
            raise QueryFailure(
                f"列出 Pod 失败 ({namespace}, {selector}): {e.status} {e.reason}"
            ) from e
        except HTTPError as e:
            raise QueryFailure(f"连接 Kubernetes API 失败: {e}") from e

        records = []
        for pod in pods.items or []:
            status = pod.status
            name = pod.metadata.name if pod.metadata else ""
            records.append(ProcessRecord(
                host_ip=(status.host_ip if status else None) or "",
                ready=self._is_ready(pod),
                name=name or "",
            ))

        self.logger.debug(
            f"在 {namespace} 中发现 {len(records)} 个匹配 {selector} 的 Pod"
        )
        return records

    @staticmethod
    def _is_ready(pod) -> bool:
        conditions = (pod.status.conditions if pod.status else None) or []
        return any(
            condition.type == "Ready" and condition.status == "True"
            for condition in conditions
        )


class DockerContainerQuery(ProcessQuery):
    """
    通过 Docker 守护进程查询容器

    namespace 对应 compose 项目标签；就绪状态取自健康检查，
    没有健康检查的运行中容器视为就绪。

    注意：ProcessRecord.host_ip 在这里填的是容器第一个网络的 IP，
    而不是宿主机 IP，写入 hosts 文件的也是容器地址。
    """

    NAMESPACE_LABEL = "com.docker.compose.project"

    def __init__(self, client: docker.DockerClient, logger: logging.Logger):
        """
        参数:
            client: Docker 客户端实例
            logger: 日志记录器实例
        """
        self.client = client
        self.logger = logger

    def label_filters(self, namespace: str, selector: str) -> List[str]:
        labels = parse_selector(selector)
        if namespace:
            labels[self.NAMESPACE_LABEL] = namespace
        return [f"{key}={value}" for key, value in labels.items()]

    def list_matching_processes(self, namespace: str, selector: str) -> List[ProcessRecord]:
        filters = {
            "label": self.label_filters(namespace, selector),
            "status": "running",
        }
        try:
            containers = self.client.containers.list(filters=filters)
        except DockerException as e:
            raise QueryFailure(f"列出容器失败 ({namespace}, {selector}): {e}") from e

        records = [
            ProcessRecord(
                host_ip=self._extract_address(container),
                ready=self._is_ready(container),
                name=container.name,
            )
            for container in containers
        ]

        self.logger.debug(
            f"发现 {len(records)} 个匹配 {selector} 的运行中容器"
        )
        return records

    @staticmethod
    def _is_ready(container: Container) -> bool:
        state = container.attrs.get('State', {})
        health = state.get('Health')
        if health:
            return health.get('Status') == 'healthy'
        return state.get('Running', False)

    def _extract_address(self, container: Container) -> str:
        networks = container.attrs.get('NetworkSettings', {}).get('Networks', {}) or {}
        for network_name, network_data in networks.items():
            ip_address = (network_data or {}).get('IPAddress')
            if ip_address:
                return ip_address
            self.logger.debug(
                f"容器 {container.name} 在 {network_name} 上没有 IP"
            )
        return ""
