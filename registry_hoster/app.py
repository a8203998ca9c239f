"""
Registry Hoster 主应用模块
"""

import logging
import sys
import threading

import docker
from docker.errors import DockerException
from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.config import ConfigException

from registry_hoster.config import Config
from registry_hoster.engine import HostsSyncEngine
from registry_hoster.errors import HosterError
from registry_hoster.events import DockerEventHandler, EventWatcher, KubernetesPodWatcher
from registry_hoster.hosts_manager import HostsDocument
from registry_hoster.query import DockerContainerQuery, KubernetesPodQuery, ProcessQuery
from registry_hoster.resolver import EndpointResolver
from registry_hoster.trigger import CoalescingTrigger


class RegistryHoster:
    """
    主应用控制器，协调所有组件

    管理 Registry Hoster 的生命周期：
    - 初始化集群客户端和组件
    - 启动时立即同步一次
    - 监听镜像仓库的变化并触发同步
    - 处理优雅关闭
    """

    def __init__(self, config: Config):
        """
        初始化 Registry Hoster 应用

        参数:
            config: 应用配置

        异常:
            ValueError: 如果配置无效
            ConfigException: 如果无法加载 Kubernetes 配置
            DockerException: 如果无法连接到 Docker 守护进程
            HostsIOError: 如果 hosts 文件不可读
        """
        self.config = config
        self.config.validate()

        self.logger = self._setup_logging()
        self._cleaned_up = threading.Event()

        self.trigger = CoalescingTrigger()
        self.client = None
        self.query, self.watcher = self._setup_backend()

        # 初始化组件
        self.resolver = EndpointResolver(self.query, self.logger)
        self.document = HostsDocument(config.hosts_file_path, self.logger)
        self.engine = HostsSyncEngine(
            self.document,
            self.resolver,
            self.trigger,
            namespace=config.registry_namespace,
            selector=config.registry_selector,
            hostname=config.registry_host,
            logger=self.logger
        )

    def _setup_logging(self) -> logging.Logger:
        """
        配置日志系统

        返回:
            配置好的日志记录器实例
        """
        logger = logging.getLogger('registry-hoster')
        logger.setLevel(self.config.log_level)

        # 避免重复的处理器
        if logger.handlers:
            return logger

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(self.config.log_level)

        # 格式: 时间戳 - 名称 - 级别 - 消息
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)

        logger.addHandler(handler)
        return logger

    def _setup_backend(self):
        """
        根据配置创建集群查询和事件监听器

        返回:
            (ProcessQuery, EventWatcher)
        """
        if self.config.backend == "docker":
            return self._setup_docker()
        return self._setup_kubernetes()

    def _setup_kubernetes(self):
        try:
            if self.config.kubeconfig:
                self.logger.info(f"正在从 {self.config.kubeconfig} 加载 Kubernetes 配置")
                k8s_config.load_kube_config(config_file=self.config.kubeconfig)
            else:
                self.logger.info("使用集群内配置连接到 Kubernetes")
                k8s_config.load_incluster_config()
        except ConfigException as e:
            self.logger.error(f"加载 Kubernetes 配置失败: {e}")
            self.logger.error(
                "请在集群内运行，或通过 KUBECONFIG 环境变量指定 kubeconfig。"
            )
            raise

        self.client = k8s_client.ApiClient()
        core_api = k8s_client.CoreV1Api(self.client)
        query: ProcessQuery = KubernetesPodQuery(
            core_api, self.logger, timeout=self.config.query_timeout
        )
        watcher: EventWatcher = KubernetesPodWatcher(
            core_api,
            self.config.registry_namespace,
            self.config.registry_selector,
            self.trigger,
            self.logger,
            timeout_seconds=self.config.watch_timeout,
            request_timeout=self.config.query_timeout
        )
        return query, watcher

    def _setup_docker(self):
        try:
            if self.config.docker_host:
                self.logger.info(f"正在连接到 Docker: {self.config.docker_host}")
                self.client = docker.DockerClient(
                    base_url=self.config.docker_host,
                    timeout=int(self.config.query_timeout)
                )
            else:
                self.logger.info("使用环境检测连接到 Docker")
                self.client = docker.from_env(timeout=int(self.config.query_timeout))

            # 测试连接
            self.client.ping()
            self.logger.info("成功连接到 Docker 守护进程")

        except DockerException as e:
            self.logger.error(f"连接到 Docker 守护进程失败: {e}")
            self.logger.error(
                "请确保 Docker 正在运行且 socket 可访问。"
                "如果使用自定义 socket，请检查 DOCKER_HOST 环境变量。"
            )
            raise

        query = DockerContainerQuery(self.client, self.logger)
        watcher = DockerEventHandler(
            self.client,
            query.label_filters(self.config.registry_namespace, self.config.registry_selector),
            self.trigger,
            self.logger
        )
        return query, watcher

    def initialize(self) -> None:
        """打印启动信息，并安排启动时的首次同步"""
        self.logger.info("=" * 60)
        self.logger.info("Registry Hoster 启动中...")
        self.logger.info(f"Hosts 文件: {self.config.hosts_file_path}")
        self.logger.info(f"镜像仓库域名: {self.config.registry_host}")
        self.logger.info(
            f"查询后端: {self.config.backend} "
            f"({self.config.registry_namespace}/{self.config.registry_selector})"
        )
        self.logger.info("=" * 60)

        self.trigger.fire()

    def run(self) -> None:
        """
        启动主事件循环

        阻塞直到 stop() 被调用。
        """
        self.initialize()
        self.watcher.start()
        self.engine.run()

    def stop(self) -> None:
        """停止事件监听器和同步引擎，可在信号处理器中调用"""
        self.watcher.stop()
        self.engine.stop()

    def cleanup(self) -> None:
        """
        清理：停止所有组件并关闭客户端

        应在 run() 返回后调用。CLEANUP_ON_EXIT 为 true 时
        同时移除 hosts 文件中的管理段。
        """
        if self._cleaned_up.is_set():
            return
        self._cleaned_up.set()

        self.logger.info("正在关闭 Registry Hoster...")

        try:
            self.stop()
            if self.config.cleanup_on_exit:
                self.remove_managed_section()
            if self.client is not None:
                self.client.close()
            self.logger.info("清理成功完成")
        except Exception as e:
            self.logger.error(f"清理期间出错: {e}", exc_info=True)

    def remove_managed_section(self) -> None:
        """从 hosts 文件中移除管理段"""
        try:
            self.document.load()
            if self.document.managed_section() is None:
                return
            self.document.cleanup_managed_section()
            self.document.flush()
            self.logger.info("已移除 hosts 文件中的管理段")
        except HosterError as e:
            self.logger.warning(
                f"移除管理段失败: {e}",
                extra={"error_kind": e.kind}
            )
