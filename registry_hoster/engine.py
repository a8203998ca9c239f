"""
hosts 同步引擎：消费触发信号，把镜像仓库地址写入 hosts 文件的管理段
"""

import enum
import logging
import threading

from registry_hoster.errors import (
    HosterError,
    HostsIOError,
    StructuralIntegrityError,
)
from registry_hoster.hosts_manager import END_OF_SECTION, START_OF_SECTION, HostsDocument
from registry_hoster.resolver import EndpointResolver
from registry_hoster.trigger import CoalescingTrigger

UNEXPECTED_ERROR_KIND = "Unexpected"


class State(enum.Enum):
    """IDLE 等待下一个触发信号，RUNNING 同步周期进行中"""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class HostsSyncEngine:
    """
    单消费者同步循环

    每个触发信号执行一次同步周期：解析端点、清理旧管理段、
    追加新管理段、写回磁盘。周期内的任何错误只记录日志，
    不会中断循环，下一次触发会重新尝试。

    引擎是 HostsDocument 的唯一持有者。
    """

    def __init__(
        self,
        document: HostsDocument,
        resolver: EndpointResolver,
        trigger: CoalescingTrigger,
        namespace: str,
        selector: str,
        hostname: str,
        logger: logging.Logger
    ):
        """
        初始化同步引擎

        参数:
            document: 已加载的 hosts 文档
            resolver: 端点解析器
            trigger: 合并触发器
            namespace: 镜像仓库所在的命名空间
            selector: 镜像仓库的标签选择器
            hostname: 要写入管理段的主机名
            logger: 日志记录器实例
        """
        self.document = document
        self.resolver = resolver
        self.trigger = trigger
        self.namespace = namespace
        self.selector = selector
        self.hostname = hostname
        self.logger = logger

        self.state = State.IDLE
        self._stop_event = threading.Event()
        # 信号处理器可能在持有锁的同一线程中再次调用 stop()
        self._stop_lock = threading.RLock()

    def _warn(self, message: str, error: HosterError) -> None:
        self.logger.warning(f"{message}: {error}", extra={"error_kind": error.kind})

    def sync_once(self) -> bool:
        """
        执行一次同步周期

        返回:
            hosts 文件被写入返回 True，周期被跳过返回 False
        """
        try:
            self.document.load()
        except HostsIOError as e:
            self._warn("重新加载 hosts 文件失败", e)
            return False

        try:
            endpoint = self.resolver.resolve(self.namespace, self.selector, self.hostname)
        except HosterError as e:
            # 解析失败时保持 hosts 文件不变
            self._warn("查找镜像仓库端点失败", e)
            return False

        try:
            previous = self.document.managed_section()
            self.document.cleanup_managed_section()
        except StructuralIntegrityError as e:
            self.logger.error(
                f"hosts 文件结构损坏，需要人工处理，本次不写入: {e}",
                extra={"error_kind": e.kind}
            )
            return False

        new_line = endpoint.to_hosts_line()
        self.document.append_raw_lines(START_OF_SECTION, new_line, END_OF_SECTION)

        try:
            self.document.flush()
        except HostsIOError as e:
            self._warn(f"清理并写入 {self.document.hosts_path} 失败", e)
            return False

        if previous == [new_line]:
            self.logger.debug(f"镜像仓库映射未变化: {endpoint}")
        else:
            self.logger.info(f"已更新镜像仓库映射: {endpoint}")
        return True

    def run(self) -> None:
        """
        启动同步循环

        阻塞直到 stop() 被调用。
        """
        self.logger.info(
            f"hosts 同步引擎已启动: {self.hostname} <- "
            f"{self.namespace}/{self.selector}"
        )

        while not self._stop_event.is_set():
            self.state = State.IDLE
            if not self.trigger.take(self._stop_event):
                continue

            self.state = State.RUNNING
            try:
                self.sync_once()
            except Exception as e:
                self.logger.error(
                    f"同步周期中的意外错误: {e}",
                    exc_info=True,
                    extra={"error_kind": UNEXPECTED_ERROR_KIND}
                )

        self.state = State.STOPPED
        self.logger.info("hosts 同步引擎已停止")

    def stop(self) -> None:
        """停止同步循环，不可恢复，重复调用无副作用"""
        with self._stop_lock:
            if self._stop_event.is_set():
                return
            self._stop_event.set()
        self.logger.info("正在停止 hosts 同步引擎...")
        self.trigger.interrupt()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()
