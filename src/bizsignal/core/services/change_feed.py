"""变更流抽象

ChangeFeedSource.subscribe(collection) 返回一个异步可迭代的 ChangeSubscription：
通知至少投递一次、可能重复；消费者处理完每条通知后调用 task_done()。
InMemoryChangeFeed 是进程内实现，供 HTTP 推送入口和测试使用。
"""

import asyncio
from typing import Protocol

import structlog

from ..models.change import ChangeNotification

log = structlog.get_logger()


class ChangeSubscription(Protocol):
    """单个集合的变更订阅"""

    collection: str

    def __aiter__(self) -> "ChangeSubscription": ...

    async def __anext__(self) -> ChangeNotification: ...

    def task_done(self) -> None: ...

    async def close(self) -> None: ...


class ChangeFeedSource(Protocol):
    def subscribe(self, collection: str) -> ChangeSubscription: ...


_CLOSED = object()


class QueueSubscription:
    """基于 asyncio.Queue 的订阅；close() 后迭代结束，未消费的通知被丢弃"""

    def __init__(self, feed: "InMemoryChangeFeed", collection: str) -> None:
        self.collection = collection
        self._feed = feed
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def backlog(self) -> int:
        return self._queue.qsize()

    def put(self, change: ChangeNotification) -> None:
        self._queue.put_nowait(change)

    def __aiter__(self) -> "QueueSubscription":
        return self

    async def __anext__(self) -> ChangeNotification:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.task_done()
            raise StopAsyncIteration
        return item

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._feed.detach(self)
        dropped = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
            dropped += 1
        if dropped:
            log.info("change_subscription_backlog_dropped", collection=self.collection, count=dropped)
        # 唤醒正在等待的消费者
        self._queue.put_nowait(_CLOSED)


class InMemoryChangeFeed:
    """进程内变更流"""

    def __init__(self) -> None:
        self._subscriptions: dict[str, set[QueueSubscription]] = {}

    def subscribe(self, collection: str) -> QueueSubscription:
        subscription = QueueSubscription(self, collection)
        self._subscriptions.setdefault(collection, set()).add(subscription)
        return subscription

    def detach(self, subscription: QueueSubscription) -> None:
        subscribers = self._subscriptions.get(subscription.collection)
        if subscribers is not None:
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscriptions[subscription.collection]

    def collections(self) -> list[str]:
        return sorted(self._subscriptions)

    def publish(self, change: ChangeNotification) -> int:
        """投递一条通知

        Returns:
            收到该通知的订阅数；0 表示该集合没有订阅者，通知被丢弃
        """
        subscribers = self._subscriptions.get(change.collection, set())
        for subscription in subscribers:
            subscription.put(change)
        if not subscribers:
            log.debug(
                "change_without_subscriber",
                collection=change.collection,
                document_id=change.document_id,
            )
        return len(subscribers)

    async def drain(self) -> None:
        """等待所有已投递通知被处理完"""
        for subscribers in list(self._subscriptions.values()):
            for subscription in list(subscribers):
                await subscription.join()
