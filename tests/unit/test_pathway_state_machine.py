"""Module and pathway completion rules, on plain objects."""

from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace

import pytest

from pathwise.exceptions import PathwayModuleNotFoundError, ResourceNotFoundError
from pathwise.pathways.state_machine import (
    ModuleState,
    PathwayStatus,
    compute_progress,
    module_state,
    record_quiz,
    record_resource,
    reset_quiz,
)
from tests.conftest import NOW


def make_pathway(*resource_counts: int, passing_score: int = 70) -> SimpleNamespace:
    modules = []
    for idx, count in enumerate(resource_counts):
        modules.append(SimpleNamespace(
            module_index=idx,
            title=f"Module {idx}",
            passing_score=passing_score,
            completed=False,
            locked=idx > 0,
            quiz_completed=False,
            quiz_score=None,
            quiz_completed_at=None,
            resources=[
                SimpleNamespace(resource_id=f"r{idx}-{n}", completed=False, completed_at=None)
                for n in range(count)
            ],
        ))
    return SimpleNamespace(
        status=PathwayStatus.NOT_STARTED.value,
        progress=0,
        current_module=0,
        completed_at=None,
        last_accessed_at=None,
        modules=modules,
    )


def finish_module(pathway, idx: int, score: float = 90) -> None:
    for resource in pathway.modules[idx].resources:
        record_resource(pathway, idx, resource.resource_id, True, NOW)
    record_quiz(pathway, idx, score, NOW)


class TestModuleCompletion:

    def test_resources_then_passing_quiz_completes_module(self):
        pathway = make_pathway(2, 3)
        record_resource(pathway, 0, "r0-0", True, NOW)
        record_resource(pathway, 0, "r0-1", True, NOW)
        assert pathway.modules[0].completed is False
        assert module_state(pathway.modules[0]) is ModuleState.QUIZ_PENDING

        transition = record_quiz(pathway, 0, 80, NOW)

        assert transition.module_completed is True
        assert pathway.modules[0].completed is True
        assert pathway.progress == 50
        assert pathway.current_module == 1
        assert pathway.modules[1].locked is False
        assert pathway.status == PathwayStatus.ACTIVE.value

    def test_reset_reverts_module_but_keeps_current_module(self):
        pathway = make_pathway(2, 3)
        finish_module(pathway, 0, 80)

        transition = reset_quiz(pathway, 0, NOW)

        assert transition.module_reverted is True
        assert pathway.modules[0].completed is False
        assert pathway.modules[0].quiz_score is None
        assert pathway.progress == 0
        assert pathway.current_module == 1

    def test_failing_quiz_recorded_but_incomplete(self):
        pathway = make_pathway(1, 1)
        record_resource(pathway, 0, "r0-0", True, NOW)
        transition = record_quiz(pathway, 0, 69, NOW)

        assert transition.module_completed is False
        assert pathway.modules[0].quiz_completed is True
        assert pathway.modules[0].quiz_score == 69
        assert pathway.modules[0].completed is False
        assert pathway.progress == 0

    def test_quiz_before_resources(self):
        """A passing quiz waits for the last resource."""
        pathway = make_pathway(2, 1)
        record_quiz(pathway, 0, 100, NOW)
        assert module_state(pathway.modules[0]) is ModuleState.RESOURCES_IN_PROGRESS
        record_resource(pathway, 0, "r0-0", True, NOW)
        transition = record_resource(pathway, 0, "r0-1", True, NOW)
        assert transition.module_completed is True
        assert transition.resource_completed is True

    def test_uncompleting_resource_reverts_module(self):
        pathway = make_pathway(1, 1)
        finish_module(pathway, 0)
        transition = record_resource(pathway, 0, "r0-0", False, NOW)
        assert transition.module_reverted is True
        assert transition.resource_completed is False
        assert pathway.modules[0].resources[0].completed_at is None

    def test_recompleting_resource_is_not_a_new_completion(self):
        pathway = make_pathway(2)
        record_resource(pathway, 0, "r0-0", True, NOW)
        assert record_resource(pathway, 0, "r0-0", True, NOW).resource_completed is False

    def test_score_out_of_range(self):
        pathway = make_pathway(1)
        with pytest.raises(ValueError):
            record_quiz(pathway, 0, 120, NOW)


class TestPathwayCompletion:

    def test_all_modules_complete_pathway(self):
        pathway = make_pathway(1, 1)
        finish_module(pathway, 0)
        later = NOW + timedelta(hours=1)
        for resource in pathway.modules[1].resources:
            record_resource(pathway, 1, resource.resource_id, True, later)
        transition = record_quiz(pathway, 1, 75, later)

        assert transition.pathway_completed is True
        assert pathway.status == PathwayStatus.COMPLETED.value
        assert pathway.completed_at == later
        assert pathway.progress == 100
        # Last module does not advance past the end
        assert pathway.current_module == 1

    def test_completed_pathway_reopens_on_reset(self):
        pathway = make_pathway(1)
        finish_module(pathway, 0)
        assert pathway.status == PathwayStatus.COMPLETED.value

        transition = reset_quiz(pathway, 0, NOW)

        assert transition.pathway_reopened is True
        assert pathway.status == PathwayStatus.ACTIVE.value
        assert pathway.completed_at is None

    def test_first_touch_activates(self):
        pathway = make_pathway(2)
        record_resource(pathway, 0, "r0-0", True, NOW)
        assert pathway.status == PathwayStatus.ACTIVE.value
        assert pathway.last_accessed_at == NOW


class TestProgress:

    def test_rounding(self):
        pathway = make_pathway(1, 1, 1)
        finish_module(pathway, 0)
        assert pathway.progress == 33
        finish_module(pathway, 1)
        assert pathway.progress == 67

    def test_empty_module_list(self):
        assert compute_progress([]) == 0

    def test_module_without_resources_needs_only_quiz(self):
        pathway = make_pathway(0, 1)
        assert module_state(pathway.modules[0]) is ModuleState.QUIZ_PENDING
        assert record_quiz(pathway, 0, 70, NOW).module_completed is True

    def test_module_without_resources_waits_on_quiz_after_failure(self):
        pathway = make_pathway(0, 1)
        record_quiz(pathway, 0, 10, NOW)
        assert module_state(pathway.modules[0]) is ModuleState.QUIZ_PENDING

    def test_failed_quiz_with_all_resources_done_is_quiz_pending(self):
        pathway = make_pathway(1, 1)
        record_resource(pathway, 0, "r0-0", True, NOW)
        record_quiz(pathway, 0, 10, NOW)
        assert module_state(pathway.modules[0]) is ModuleState.QUIZ_PENDING


class TestLookups:

    def test_unknown_module(self):
        with pytest.raises(PathwayModuleNotFoundError):
            record_quiz(make_pathway(1), 5, 80, NOW)

    def test_unknown_resource(self):
        with pytest.raises(ResourceNotFoundError):
            record_resource(make_pathway(1), 0, "nope", True, NOW)
