"""ShadowCache -- 文档最近一次已见快照（有界 LRU）

变更流不提供 before 时，用它作为 modified 通知的前置快照。
容量为 0 时禁用。
"""

import copy
from collections import OrderedDict
from typing import Any

CacheKey = tuple[str, str, str]


class ShadowCache:
    def __init__(self, capacity: int = 10_000) -> None:
        self._capacity = capacity
        self._entries: OrderedDict[CacheKey, dict[str, Any]] = OrderedDict()

    def get(self, key: CacheKey) -> dict[str, Any] | None:
        snapshot = self._entries.get(key)
        if snapshot is None:
            return None
        self._entries.move_to_end(key)
        return copy.deepcopy(snapshot)

    def put(self, key: CacheKey, snapshot: dict[str, Any]) -> None:
        if self._capacity <= 0:
            return
        self._entries[key] = copy.deepcopy(snapshot)
        self._entries.move_to_end(key)
        while len(self._entries) > self._capacity:
            self._entries.popitem(last=False)

    def evict(self, key: CacheKey) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries
