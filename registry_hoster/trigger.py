"""
合并触发器：容量为 1 的信号队列
"""

import threading
from typing import Optional


class CoalescingTrigger:
    """
    只携带信号、不携带数据的触发器

    在消费者处理期间多次 fire() 只会留下一个待处理的信号，
    一连串上游事件之后最多触发一次重新同步。
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._pending = False

    def fire(self) -> bool:
        """
        发出一次触发信号

        返回:
            如果信号被合并到已有的待处理信号中返回 False，否则返回 True
        """
        with self._cond:
            coalesced = self._pending
            self._pending = True
            self._cond.notify_all()
        return not coalesced

    @property
    def pending(self) -> bool:
        with self._cond:
            return self._pending

    def take(self, stop_event: threading.Event, timeout: Optional[float] = None) -> bool:
        """
        阻塞等待下一个信号并将其取走

        stop_event 置位后立即返回 False，即使还有待处理的信号。

        参数:
            stop_event: 停止信号
            timeout: 最长等待时间（秒），None 表示一直等待

        返回:
            取到信号返回 True，停止或超时返回 False
        """
        with self._cond:
            self._cond.wait_for(
                lambda: self._pending or stop_event.is_set(),
                timeout=timeout
            )
            if stop_event.is_set() or not self._pending:
                return False
            self._pending = False
            return True

    def interrupt(self) -> None:
        """唤醒所有等待者，使其重新检查停止信号"""
        with self._cond:
            self._cond.notify_all()
