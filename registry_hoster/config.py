"""
配置管理模块，支持环境变量
"""

import os
from dataclasses import dataclass
from typing import Optional

from registry_hoster.query import parse_selector


@dataclass
class Config:
    """应用配置类，从环境变量加载配置"""

    hosts_file_path: str = "/etc/hosts"
    registry_host: str = "goodrain.me"
    registry_namespace: str = "rbd-system"
    registry_selector: str = "name=rbd-hub"
    backend: str = "kubernetes"
    kubeconfig: Optional[str] = None
    docker_host: Optional[str] = None
    query_timeout: float = 10.0
    watch_timeout: int = 300
    cleanup_on_exit: bool = False
    log_level: str = "INFO"

    BACKENDS = ("kubernetes", "docker")

    @classmethod
    def from_env(cls) -> "Config":
        """
        从环境变量加载配置

        环境变量说明:
            HOSTS_FILE: hosts 文件路径 (默认: /etc/hosts)
            REGISTRY_HOST: 写入管理段的镜像仓库域名 (默认: goodrain.me)
            REGISTRY_NAMESPACE: 镜像仓库所在命名空间 (默认: rbd-system)
            REGISTRY_SELECTOR: 镜像仓库标签选择器 (默认: name=rbd-hub)
            BACKEND: 集群查询后端 kubernetes 或 docker (默认: kubernetes)
            KUBECONFIG: kubeconfig 路径 (默认: 集群内配置)
            DOCKER_HOST: Docker 守护进程 socket URL (默认: 自动检测)
            QUERY_TIMEOUT: 单次集群查询超时秒数 (默认: 10)
            WATCH_TIMEOUT: 单次 watch 持续秒数 (默认: 300)
            CLEANUP_ON_EXIT: 退出时移除管理段 (默认: false)
            LOG_LEVEL: 日志级别 (默认: INFO)
        """
        return cls(
            hosts_file_path=os.getenv("HOSTS_FILE", "/etc/hosts"),
            registry_host=os.getenv("REGISTRY_HOST", "goodrain.me"),
            registry_namespace=os.getenv("REGISTRY_NAMESPACE", "rbd-system"),
            registry_selector=os.getenv("REGISTRY_SELECTOR", "name=rbd-hub"),
            backend=os.getenv("BACKEND", "kubernetes").lower(),
            kubeconfig=os.getenv("KUBECONFIG") or None,
            docker_host=os.getenv("DOCKER_HOST"),
            query_timeout=float(os.getenv("QUERY_TIMEOUT", "10")),
            watch_timeout=int(os.getenv("WATCH_TIMEOUT", "300")),
            cleanup_on_exit=os.getenv("CLEANUP_ON_EXIT", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper()
        )

    def validate(self) -> None:
        """验证配置是否有效"""
        valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.log_level not in valid_log_levels:
            raise ValueError(
                f"无效的 LOG_LEVEL: {self.log_level}. "
                f"必须是以下之一: {', '.join(sorted(valid_log_levels))}"
            )

        if self.backend not in self.BACKENDS:
            raise ValueError(
                f"无效的 BACKEND: {self.backend}. "
                f"必须是以下之一: {', '.join(self.BACKENDS)}"
            )

        if not self.registry_host.strip() or len(self.registry_host.split()) != 1:
            raise ValueError(f"无效的 REGISTRY_HOST: {self.registry_host!r}")

        if self.query_timeout <= 0:
            raise ValueError(f"QUERY_TIMEOUT 必须大于 0: {self.query_timeout}")

        if self.watch_timeout <= 0:
            raise ValueError(f"WATCH_TIMEOUT 必须大于 0: {self.watch_timeout}")

        # 两种后端都只支持基于等值的选择器
        parse_selector(self.registry_selector)
