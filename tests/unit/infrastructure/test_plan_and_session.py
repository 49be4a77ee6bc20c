"""Unit tests for PlanTracker and InMemoryTabSession."""

from pagepilot.core.domain.models import PageContext
from pagepilot.infrastructure.planning.plan_tracker import PlanTracker, StepStatus
from pagepilot.infrastructure.session.tab_session import InMemoryTabSession

STEPS = [
    {"id": "1", "title": "Search", "status": "pending"},
    {"id": "2", "title": "Open result", "status": "pending"},
    {"id": "3", "title": "Extract price", "status": "pending", "children": [{"id": "3.1", "title": "Read"}]},
]


class TestPlanTracker:
    def test_calls_without_plan_are_noops(self):
        tracker = PlanTracker()

        tracker.mark_step_done()
        tracker.mark_step_failed("boom")
        tracker.advance_step()
        tracker.mark_remaining_steps_done()

        assert tracker.plan is None
        assert tracker.current_step() is None

    def test_batch_reports_against_one_step(self):
        """All calls in a batch update the same step until advance_step()."""
        tracker = PlanTracker()
        tracker.create_plan("Buy shoes", STEPS)

        tracker.mark_step_done()
        tracker.mark_step_done("second call")

        steps = tracker.plan.steps
        assert steps[0].status == StepStatus.DONE
        assert steps[0].detail == "second call"
        assert steps[1].status == StepStatus.PENDING

        tracker.advance_step()
        tracker.mark_step_failed("x" * 80)

        assert steps[1].status == StepStatus.FAILED
        assert steps[1].detail == "x" * 50

    def test_failed_step_is_retried_next_batch(self):
        tracker = PlanTracker()
        tracker.create_plan("G", STEPS)

        tracker.mark_step_failed("timeout")
        tracker.advance_step()

        assert tracker.current_step().id == "1"

    def test_all_steps_done(self):
        tracker = PlanTracker()
        tracker.create_plan("G", STEPS[:1])

        tracker.mark_step_done()
        tracker.advance_step()

        assert tracker.current_step() is None

    def test_update_plan_replaces_steps(self):
        tracker = PlanTracker()
        tracker.create_plan("G", STEPS)
        tracker.mark_step_done()

        tracker.update_plan("G2", [{"id": "a", "title": "New"}])

        assert tracker.plan.goal == "G2"
        assert [s.id for s in tracker.plan.steps] == ["a"]
        assert tracker.current_step().status == StepStatus.PENDING

    def test_update_without_plan_creates_one(self):
        tracker = PlanTracker()

        tracker.update_plan("G", STEPS)

        assert len(tracker.plan.steps) == 3
        assert tracker.plan.steps[2].children[0].id == "3.1"

    def test_mark_remaining_steps_done_and_markdown(self):
        tracker = PlanTracker()
        tracker.create_plan("Buy shoes", STEPS)
        tracker.mark_step_failed("no results")

        tracker.mark_remaining_steps_done()
        markdown = tracker.plan.to_markdown()

        assert markdown.splitlines() == [
            "Goal: Buy shoes",
            "[!] 1. Search (no results)",
            "[x] 2. Open result",
            "[x] 3. Extract price",
        ]
        assert tracker.plan.steps[2].children[0].status == StepStatus.DONE


class TestInMemoryTabSession:
    def test_summary_needs_two_tabs(self):
        session = InMemoryTabSession()
        session.set_tab_context(1, PageContext(url="https://a.example/", title="A"))

        assert session.build_context_summary() == ""

    def test_summary_lists_tabs_and_data(self):
        session = InMemoryTabSession()
        session.set_tab_context(1, PageContext(url="https://a.example/", title="A"))
        session.set_tab_context(2, PageContext(url="https://b.example/", title="B"))
        session.store_data(1, "page.extract", {"price": 42})
        session.store_data(2, "page.extract", "z" * 300)

        summary = session.build_context_summary().splitlines()

        assert summary[0] == "- Tab 1: A (https://a.example/)"
        assert summary[1] == '  - page.extract: {"price": 42}'
        assert summary[2] == "- Tab 2: B (https://b.example/)"
        assert summary[3] == "  - page.extract: " + "z" * 200 + "..."

    def test_new_page_resets_tab_data(self):
        session = InMemoryTabSession()
        session.set_tab_context(1, PageContext(url="https://a.example/", title="A"))
        session.store_data(1, "t", "v")

        session.set_tab_context(1, PageContext(url="https://a.example/next", title="Next"))

        assert session.get_tab(1).extracted_data == {}

    def test_store_data_for_unknown_tab(self):
        session = InMemoryTabSession()

        session.store_data(9, "t", "v")

        assert session.get_tab(9).extracted_data == {"t": "v"}

    def test_end_session_is_idempotent(self):
        session = InMemoryTabSession()
        session.set_tab_context(1, PageContext(url="u", title="t"))

        session.end_session()
        session.end_session()

        assert session.active is False
        assert session.get_tab(1) is None
