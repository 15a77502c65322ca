"""
变更事件流 - 把回调式订阅转换为可迭代、可关闭的通道

生产者（订阅回调线程）调用 put/put_error，消费者（JobWatcher）迭代：
- close() 之后迭代结束
- put_error() 入队的错误在消费者侧抛出
"""

from __future__ import annotations

import queue
import threading
from typing import Callable, Iterator

from ..interfaces import IChangeStream
from ..models import JobChange

_CLOSED = object()


class ChangeStream(IChangeStream):
    """线程安全的变更通道"""

    def __init__(self, on_close: Callable[[], None] | None = None):
        self._items: queue.Queue = queue.Queue()
        self._closed = threading.Event()
        self._on_close = on_close

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def put(self, change: JobChange) -> None:
        if not self.closed:
            self._items.put(change)

    def put_error(self, error: BaseException) -> None:
        if not self.closed:
            self._items.put(error)

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        self._items.put(_CLOSED)
        if self._on_close is not None:
            self._on_close()

    def __iter__(self) -> Iterator[JobChange]:
        while True:
            item = self._items.get()
            if item is _CLOSED:
                return
            if isinstance(item, BaseException):
                raise item
            yield item
