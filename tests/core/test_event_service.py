"""EventService 测试 -- 幂等创建、生命周期流转、pending 推送"""

import asyncio

import pytest

from bizsignal.core.engine import Engine
from bizsignal.core.exceptions import EventNotFoundError, EventStatusConflictError
from bizsignal.core.models import EventStatus


@pytest.fixture
def service(engine: Engine):
    return engine.event_service


class TestCreateEvent:
    async def test_create_pending_event(self, service, make_draft, clock):
        event_id, created = await service.create_event(make_draft())
        assert created is True

        event = await service.get_event(event_id)
        assert event.status == EventStatus.PENDING
        assert event.created_at == clock.now()
        assert event.generated_task_ids == []
        assert len(event_id) == 26

    async def test_same_idempotency_key_returns_existing(self, service, make_draft):
        first_id, _ = await service.create_event(make_draft())
        second_id, created = await service.create_event(make_draft(title="changed"))
        assert second_id == first_id
        assert created is False
        assert len(await service.list_pending()) == 1

    async def test_broadcast_only_for_new_events(self, service, make_draft):
        queue = await service.subscribe_pending()
        await service.create_event(make_draft())
        await service.create_event(make_draft())
        event = queue.get_nowait()
        assert event.event_type == "engagement_created"
        assert queue.empty()
        await service.unsubscribe_pending(queue)
        assert service.hub.subscriber_count == 0

    async def test_full_subscriber_queue_is_dropped(self, store_group, make_draft):
        from bizsignal.core.services import EventService, PendingEventHub

        hub = PendingEventHub(queue_maxsize=1)
        service = EventService(store_group, hub=hub)
        await service.subscribe_pending()
        await service.create_event(make_draft(idempotency_key="a"))
        await service.create_event(make_draft(idempotency_key="b"))
        assert hub.subscriber_count == 0


class TestLifecycle:
    async def test_processing_then_processed(self, service, make_draft, clock):
        event_id, _ = await service.create_event(make_draft())
        await service.mark_processing(event_id)
        clock.advance(seconds=2)
        event = await service.mark_processed(event_id, ["t-1", "t-2"])
        assert event.status == EventStatus.PROCESSED
        assert event.generated_task_ids == ["t-1", "t-2"]
        assert event.processed_at == clock.now()

    async def test_mark_processed_is_idempotent(self, service, make_draft):
        event_id, _ = await service.create_event(make_draft())
        await service.mark_processed(event_id, ["t-1", "t-2"])
        again = await service.mark_processed(event_id, ["t-2", "t-1"])
        assert again.status == EventStatus.PROCESSED

        with pytest.raises(EventStatusConflictError):
            await service.mark_processed(event_id, ["t-3"])

    async def test_mark_failed_keeps_partial_tasks(self, service, make_draft):
        event_id, _ = await service.create_event(make_draft())
        await service.mark_processing(event_id)
        event = await service.mark_failed(event_id, "template x failed", task_ids=["t-1"])
        assert event.status == EventStatus.FAILED
        assert event.error == "template x failed"
        assert event.generated_task_ids == ["t-1"]

    async def test_failed_cannot_be_processed(self, service, make_draft):
        event_id, _ = await service.create_event(make_draft())
        await service.mark_failed(event_id, "boom")
        with pytest.raises(EventStatusConflictError) as exc_info:
            await service.mark_processed(event_id, [])
        assert exc_info.value.current == EventStatus.FAILED

    async def test_ignore_failed_event_keeps_error(self, service, make_draft):
        event_id, _ = await service.create_event(make_draft())
        await service.mark_failed(event_id, "boom")
        event = await service.mark_ignored(event_id)
        assert event.status == EventStatus.IGNORED
        assert event.error == "boom"

    async def test_processed_cannot_be_ignored(self, service, make_draft):
        event_id, _ = await service.create_event(make_draft())
        await service.mark_processed(event_id, [])
        with pytest.raises(EventStatusConflictError):
            await service.mark_ignored(event_id, "too late")

    async def test_unknown_event(self, service):
        with pytest.raises(EventNotFoundError):
            await service.mark_processing("missing")

    async def test_concurrent_processing_has_single_winner(self, service, make_draft):
        event_id, _ = await service.create_event(make_draft())
        results = await asyncio.gather(
            service.mark_processing(event_id),
            service.mark_processing(event_id),
            return_exceptions=True,
        )
        conflicts = [r for r in results if isinstance(r, EventStatusConflictError)]
        assert len(conflicts) == 1


class TestQueries:
    async def test_list_pending_newest_first(self, service, make_draft, clock):
        ids = []
        for i in range(3):
            clock.advance(seconds=1)
            event_id, _ = await service.create_event(make_draft(idempotency_key=f"k-{i}"))
            ids.append(event_id)

        pending = await service.list_pending()
        assert [e.event_id for e in pending] == list(reversed(ids))
        assert [e.event_id for e in await service.list_pending(limit=1, offset=1)] == [ids[1]]

    async def test_list_by_status_and_module(self, service, make_draft):
        a, _ = await service.create_event(make_draft(idempotency_key="a"))
        b, _ = await service.create_event(
            make_draft(idempotency_key="b", source_module="inventory", event_type="stock_low")
        )
        await service.mark_failed(b, "boom")

        failed = await service.list_by_status(EventStatus.FAILED)
        assert [e.event_id for e in failed] == [b]
        assert [e.event_id for e in await service.list_for_module("engagements")] == [a]
        assert [e.event_id for e in await service.list_for_entity("engagements", "eng-1")] == [b, a]
