"""可注入的时钟 -- triggered_at / due_date 在测试中可确定"""

from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """系统 UTC 时钟"""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FrozenClock:
    """固定时间时钟，可手动推进"""

    def __init__(self, at: datetime) -> None:
        self._at = at

    def now(self) -> datetime:
        return self._at

    def advance(self, **kwargs: float) -> None:
        self._at = self._at + timedelta(**kwargs)

    def set(self, at: datetime) -> None:
        self._at = at
