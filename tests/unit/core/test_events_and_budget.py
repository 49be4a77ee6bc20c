"""Unit tests for the EventBus, call classification and ContextBudgeter."""

from unittest.mock import MagicMock

from pagepilot.core.domain.call_kinds import CallClassifier, CallKind
from pagepilot.core.domain.context_budget import ContextBudgeter, ContextBudgetSettings
from pagepilot.core.domain.events import EventBus, EventType


class TestEventBus:
    def test_emit_delivers_event_to_listeners(self):
        bus = EventBus()
        received = []
        bus.subscribe(received.append)

        bus.emit(EventType.NAVIGATION, tool_name="nav.home")

        assert len(received) == 1
        assert received[0].type == EventType.NAVIGATION
        assert received[0].data == {"tool_name": "nav.home"}

    def test_failing_listener_is_isolated(self):
        bus = EventBus()
        received = []
        bus.subscribe(MagicMock(side_effect=RuntimeError("boom")))
        bus.subscribe(received.append)

        bus.emit(EventType.TIMEOUT)

        assert [e.type for e in received] == [EventType.TIMEOUT]

    def test_unsubscribe_during_emit_keeps_current_emission(self):
        """Listeners removed mid-emission still receive the event being emitted."""
        bus = EventBus()
        second = MagicMock()
        unsubscribe_second = None

        def first(event):
            unsubscribe_second()

        bus.subscribe(first)
        unsubscribe_second = bus.subscribe(second)

        bus.emit(EventType.AI_RESPONSE, text="hi")
        bus.emit(EventType.AI_RESPONSE, text="again")

        second.assert_called_once()
        assert bus.listener_count == 1

    def test_unsubscribe_twice_and_clear(self):
        bus = EventBus()
        unsubscribe = bus.subscribe(MagicMock())

        unsubscribe()
        unsubscribe()
        bus.subscribe(MagicMock())
        bus.clear()

        assert bus.listener_count == 0


class TestCallClassifier:
    def test_default_classification(self):
        classifier = CallClassifier()

        assert classifier.classify("create_plan") == CallKind.PLAN
        assert classifier.classify("update_plan") == CallKind.PLAN
        assert classifier.classify("delegate_task") == CallKind.DELEGATION
        assert classifier.classify("search.query") == CallKind.NAVIGATION
        assert classifier.classify("nav.back") == CallKind.NAVIGATION
        assert classifier.classify("form.submit-login") == CallKind.NAVIGATION
        assert classifier.classify("form.fill-email") == CallKind.TOOL

    def test_custom_navigation_prefixes(self):
        classifier = CallClassifier(navigation_prefixes=("go.",))

        assert classifier.classify("go.next") == CallKind.NAVIGATION
        assert classifier.classify("search.query") == CallKind.TOOL


class TestContextBudgeter:
    def test_small_result_passes_through(self):
        budgeter = ContextBudgeter()

        assert budgeter.process_tool_result("page.extract", "short") == "short"
        assert budgeter.process_tool_result("page.extract", {"a": 1}) == {"a": 1}

    def test_large_result_is_offloaded_with_reference(self):
        budgeter = ContextBudgeter(ContextBudgetSettings(offload_threshold=10, offload_preview_chars=5))
        text = "abcdefghij" * 5

        first = budgeter.process_tool_result("page.extract", text)
        second = budgeter.process_tool_result("page.extract", text)

        assert first == "abcde\n\n[... 13 tokens offloaded - ref: offload-page.extract-0]"
        assert second.endswith("ref: offload-page.extract-1]")
        assert budgeter.get_offloaded("offload-page.extract-0") == text
        assert budgeter.get_offloaded("offload-missing-0") is None

    def test_threshold_is_exclusive(self):
        budgeter = ContextBudgeter(ContextBudgetSettings(offload_threshold=2))

        assert budgeter.process_tool_result("t", "12345678") == "12345678"

    def test_usage_tracking_and_reset(self):
        budgeter = ContextBudgeter(ContextBudgetSettings(offload_threshold=1))
        budgeter.track_usage(100, 20)
        budgeter.track_usage(50, 5)
        budgeter.process_tool_result("t", "long enough text")

        usage = budgeter.get_usage()
        assert (usage.input_tokens, usage.output_tokens, usage.total_tokens) == (150, 25, 175)

        budgeter.reset()

        assert budgeter.get_usage().total_tokens == 0
        assert budgeter.get_offloaded("offload-t-0") is None

    def test_estimate_tokens_rounds_up(self):
        budgeter = ContextBudgeter()

        assert budgeter.estimate_tokens("") == 0
        assert budgeter.estimate_tokens("abc") == 1
        assert budgeter.estimate_tokens("abcde") == 2
