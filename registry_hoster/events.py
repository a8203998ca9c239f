"""
事件监听模块：把集群中镜像仓库的变化转换为同步触发信号
"""

import logging
import threading
from typing import Optional, Set

import docker
from docker.errors import DockerException
from kubernetes import watch
from kubernetes.client import ApiException, CoreV1Api
from urllib3.exceptions import HTTPError

from registry_hoster.trigger import CoalescingTrigger


class EventWatcher:
    """
    事件监听器基类

    在后台线程中运行 listen_events()，只负责调用 trigger.fire()。
    """

    name = "event-watcher"

    def __init__(self, trigger: CoalescingTrigger, logger: logging.Logger):
        self.trigger = trigger
        self.logger = logger
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return not self._stop_event.is_set()

    def start(self) -> None:
        """在守护线程中启动监听"""
        self._thread = threading.Thread(
            target=self.listen_events,
            name=self.name,
            daemon=True
        )
        self._thread.start()

    def listen_events(self) -> None:
        raise NotImplementedError

    def _fire(self, reason: str) -> None:
        if self.trigger.fire():
            self.logger.debug(f"触发同步: {reason}")
        else:
            self.logger.debug(f"已有待处理的同步，合并: {reason}")

    def stop(self) -> None:
        """停止监听事件"""
        self._stop_event.set()
        self.logger.info(f"正在停止事件监听器 {self.name}...")


class KubernetesPodWatcher(EventWatcher):
    """
    监听匹配选择器的 Pod 变化（list-then-watch）

    410 Gone 时重新 list；其它 API 错误按指数退避重连（最长 30 秒）；
    401/403 视为权限配置错误，停止监听。
    """

    name = "pod-watcher"

    # 应该触发同步的 Pod 事件
    WATCHED_EVENTS: Set[str] = {'ADDED', 'MODIFIED', 'DELETED'}
    MAX_BACKOFF = 30

    def __init__(
        self,
        core_api: CoreV1Api,
        namespace: str,
        selector: str,
        trigger: CoalescingTrigger,
        logger: logging.Logger,
        timeout_seconds: int = 300,
        request_timeout: float = 10
    ):
        """
        初始化 Pod 监听器

        参数:
            core_api: Kubernetes CoreV1Api 实例
            namespace: 命名空间
            selector: 标签选择器
            trigger: 合并触发器
            logger: 日志记录器实例
            timeout_seconds: 单次 watch 的持续时间
            request_timeout: 重新 list 的请求超时（秒）
        """
        super().__init__(trigger, logger)
        self.core_api = core_api
        self.namespace = namespace
        self.selector = selector
        self.timeout_seconds = timeout_seconds
        self.request_timeout = request_timeout
        self._watcher: Optional[watch.Watch] = None
        self._watcher_lock = threading.Lock()

    def _list_resource_version(self) -> Optional[str]:
        pods = self.core_api.list_namespaced_pod(
            namespace=self.namespace,
            label_selector=self.selector,
            _request_timeout=self.request_timeout,
        )
        metadata = getattr(pods, "metadata", None)
        return getattr(metadata, "resource_version", None)

    def watch_once(self, resource_version: Optional[str]) -> Optional[str]:
        """
        打开一次 watch 流并处理其中的事件

        参数:
            resource_version: 起始 resourceVersion

        返回:
            最后看到的 resourceVersion
        """
        watcher = watch.Watch()
        with self._watcher_lock:
            self._watcher = watcher

        try:
            stream = watcher.stream(
                self.core_api.list_namespaced_pod,
                namespace=self.namespace,
                label_selector=self.selector,
                resource_version=resource_version,
                timeout_seconds=self.timeout_seconds,
            )
            for event in stream:
                if not self.running:
                    break

                pod = event.get('object')
                metadata = getattr(pod, 'metadata', None)
                if metadata is not None and metadata.resource_version:
                    resource_version = metadata.resource_version

                event_type = str(event.get('type', ''))
                if event_type in self.WATCHED_EVENTS:
                    pod_name = getattr(metadata, 'name', 'unknown')
                    self.logger.info(f"Pod 事件: {event_type} - {pod_name}")
                    self._fire(f"{event_type} {pod_name}")
        finally:
            with self._watcher_lock:
                self._watcher = None

        return resource_version

    def listen_events(self) -> None:
        """
        监听 Pod 事件直到停止

        每次重新 list 后都会触发一次同步，以覆盖断连期间错过的变化。
        """
        self.logger.info(
            f"启动 Pod 事件监听器: {self.namespace}/{self.selector}"
        )

        resource_version: Optional[str] = None
        backoff = 1

        while self.running:
            try:
                if resource_version is None:
                    resource_version = self._list_resource_version()
                    self._fire("re-list")
                resource_version = self.watch_once(resource_version)
                backoff = 1
                continue
            except ApiException as e:
                if e.status == 410:
                    self.logger.warning("watch 的 resourceVersion 已过期，重新 list")
                    resource_version = None
                    continue
                if e.status in (401, 403):
                    self.logger.error(
                        f"Kubernetes API 拒绝访问 (status={e.status})，"
                        "请检查 RBAC 和 service account 权限"
                    )
                    return
                self.logger.error(f"Pod 事件监听器中的 Kubernetes API 错误: {e.status} {e.reason}")
            except HTTPError as e:
                self.logger.error(f"连接 Kubernetes API 失败: {e}")
            except Exception as e:
                self.logger.error(f"Pod 事件监听器中的意外错误: {e}", exc_info=True)

            resource_version = None
            self._stop_event.wait(timeout=backoff)
            backoff = min(backoff * 2, self.MAX_BACKOFF)

        self.logger.info("Pod 事件监听器已停止")

    def stop(self) -> None:
        """停止监听，并立即中断正在进行的 watch 流"""
        super().stop()
        with self._watcher_lock:
            watcher = self._watcher
        if watcher is not None:
            watcher.stop()


class DockerEventHandler(EventWatcher):
    """
    监听 Docker 容器事件

    只关注匹配标签过滤器的容器的生命周期和健康状态变化。
    """

    name = "docker-watcher"

    # 应该触发同步的事件
    WATCHED_EVENTS: Set[str] = {'start', 'stop', 'die', 'destroy', 'health_status'}
    MAX_BACKOFF = 30

    def __init__(
        self,
        client: docker.DockerClient,
        label_filters,
        trigger: CoalescingTrigger,
        logger: logging.Logger
    ):
        """
        初始化事件处理器

        参数:
            client: Docker 客户端实例
            label_filters: 标签过滤器列表 (key=value)
            trigger: 合并触发器
            logger: 日志记录器实例
        """
        super().__init__(trigger, logger)
        self.client = client
        self.label_filters = list(label_filters)
        self._events = None

    def handle_event(self, event: dict) -> None:
        """处理单个 Docker 事件"""
        if event.get('Type') != 'container':
            return

        # health_status 事件的 Action 形如 "health_status: healthy"
        action = (event.get('Action') or '').split(':', 1)[0]
        if action not in self.WATCHED_EVENTS:
            return

        container_id = event.get('id', 'unknown')[:12]
        container_name = event.get('Actor', {}).get('Attributes', {}).get('name', 'unknown')
        self.logger.info(
            f"容器事件: {event.get('Action')} - {container_name} ({container_id})"
        )
        self._fire(f"{action} {container_name}")

    def listen_events(self) -> None:
        """
        监听 Docker 事件直到停止

        连接中断后按指数退避重连，重连后触发一次同步。
        """
        self.logger.info("启动 Docker 事件监听器")

        filters = {'type': 'container', 'label': self.label_filters}
        backoff = 1

        while self.running:
            try:
                self._events = self.client.events(decode=True, filters=filters)
                self._fire("re-connect")
                for event in self._events:
                    if not self.running:
                        break
                    self.handle_event(event)
                backoff = 1
                continue
            except DockerException as e:
                self.logger.error(f"事件监听器中的 Docker API 错误: {e}")
            except Exception as e:
                if not self.running:
                    break
                self.logger.error(f"事件监听器中的意外错误: {e}", exc_info=True)

            self._stop_event.wait(timeout=backoff)
            backoff = min(backoff * 2, self.MAX_BACKOFF)

        self.logger.info("Docker 事件监听器已停止")

    def stop(self) -> None:
        super().stop()
        events = self._events
        if events is not None:
            events.close()
