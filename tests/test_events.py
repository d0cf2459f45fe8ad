"""Unit tests for :mod:`lifebook.events`."""

from __future__ import annotations

import gc

from lifebook.events import Event, EventBus, FlowDecided, ManuscriptPatched, PatchFailed, TurnRecorded


class TestEventBusSubscription:
    """Subscription bookkeeping."""

    def test_subscribe_counts_per_event_type(self) -> None:
        bus: EventBus[Event] = EventBus()

        bus.subscribe(ManuscriptPatched, lambda e: None)
        bus.subscribe(ManuscriptPatched, lambda e: None)
        bus.subscribe(PatchFailed, lambda e: None)

        assert bus.handler_count(ManuscriptPatched) == 2
        assert bus.handler_count(PatchFailed) == 1
        assert bus.handler_count() == 3

    def test_unsubscribe_removes_one_registration(self) -> None:
        bus: EventBus[Event] = EventBus()

        def handler(event: TurnRecorded) -> None:
            pass

        bus.subscribe(TurnRecorded, handler)
        bus.subscribe(TurnRecorded, handler)
        bus.unsubscribe(TurnRecorded, handler)

        assert bus.handler_count(TurnRecorded) == 1

    def test_unsubscribe_unknown_handler_is_safe(self) -> None:
        bus: EventBus[Event] = EventBus()

        bus.unsubscribe(FlowDecided, lambda e: None)

        assert bus.handler_count() == 0


class TestEventBusPublish:
    """Delivery semantics."""

    def test_publish_invokes_matching_handlers_in_order(self) -> None:
        bus: EventBus[Event] = EventBus()
        order: list[str] = []

        bus.subscribe(TurnRecorded, lambda e: order.append(f"first:{e.index}"))
        bus.subscribe(TurnRecorded, lambda e: order.append(f"second:{e.index}"))
        bus.subscribe(FlowDecided, lambda e: order.append("flow"))

        bus.publish(TurnRecorded(index=3, question="q", answered=True))

        assert order == ["first:3", "second:3"]

    def test_publish_continues_after_handler_exception(self) -> None:
        bus: EventBus[Event] = EventBus()
        received: list[int] = []

        def failing(event: PatchFailed) -> None:
            raise ValueError("boom")

        bus.subscribe(PatchFailed, lambda e: received.append(1))
        bus.subscribe(PatchFailed, failing)
        bus.subscribe(PatchFailed, lambda e: received.append(3))

        bus.publish(PatchFailed(version_id=1, reason="not_found", message="reselect"))

        assert received == [1, 3]

    def test_publish_without_handlers_is_safe(self) -> None:
        EventBus().publish(FlowDecided(should_transition=False, reason="continue_current_topic", source="heuristic"))


class TestEventBusWeakReferences:
    """Bound methods are held weakly."""

    def test_bound_method_handler_cleaned_up_on_gc(self) -> None:
        bus: EventBus[Event] = EventBus()
        received: list[ManuscriptPatched] = []

        class View:
            def on_patched(self, event: ManuscriptPatched) -> None:
                received.append(event)

        view = View()
        bus.subscribe(ManuscriptPatched, view.on_patched)
        event = ManuscriptPatched(version_id=2, strategy="exact", span=(0, 1), summary="patch: +1 chars")
        bus.publish(event)

        del view
        gc.collect()
        bus.publish(event)

        assert received == [event]
        assert bus.handler_count(ManuscriptPatched) == 0

    def test_clear_removes_everything(self) -> None:
        bus: EventBus[Event] = EventBus()
        bus.subscribe(ManuscriptPatched, lambda e: None)
        bus.subscribe(TurnRecorded, lambda e: None)

        bus.clear()

        assert bus.handler_count() == 0
