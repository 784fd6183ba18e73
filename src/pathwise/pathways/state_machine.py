"""Module and pathway completion rules.

Module states::

    not_started -> resources_in_progress -> quiz_pending -> completed

A module is completed only when every resource flag is set AND the quiz
was completed with ``score >= passing_score``. ``pathway.progress`` is
derived from the module flags after every change and never written
independently. A pathway is completed exactly when every module is.

The functions mutate the pathway objects they are given (ORM rows or any
object with the same attributes) and return the transitions that occurred;
they never touch a session.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pathwise.exceptions import PathwayModuleNotFoundError, ResourceNotFoundError


class ModuleState(str, Enum):
    NOT_STARTED = "not_started"
    RESOURCES_IN_PROGRESS = "resources_in_progress"
    QUIZ_PENDING = "quiz_pending"
    COMPLETED = "completed"


class PathwayStatus(str, Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass
class PathwayTransition:
    module_index: int
    module_completed: bool = False
    module_reverted: bool = False
    resource_completed: bool = False
    pathway_completed: bool = False
    pathway_reopened: bool = False


def quiz_passed(module: Any) -> bool:
    return bool(
        module.quiz_completed
        and module.quiz_score is not None
        and module.quiz_score >= module.passing_score
    )


def resources_done(module: Any) -> bool:
    return all(r.completed for r in module.resources)


def is_module_complete(module: Any) -> bool:
    return resources_done(module) and quiz_passed(module)


def module_state(module: Any) -> ModuleState:
    if is_module_complete(module):
        return ModuleState.COMPLETED
    if resources_done(module):
        return ModuleState.QUIZ_PENDING
    if any(r.completed for r in module.resources) or module.quiz_completed:
        return ModuleState.RESOURCES_IN_PROGRESS
    return ModuleState.NOT_STARTED


def compute_progress(modules: list[Any]) -> int:
    """Percentage of completed modules, rounded half up."""
    if not modules:
        return 0
    completed = sum(1 for m in modules if m.completed)
    return int(completed * 100 / len(modules) + 0.5)


def find_module(pathway: Any, module_index: int) -> Any:
    for module in pathway.modules:
        if module.module_index == module_index:
            return module
    raise PathwayModuleNotFoundError(f"Module {module_index} not found")


def find_resource(module: Any, resource_id: str) -> Any:
    for resource in module.resources:
        if resource.resource_id == resource_id:
            return resource
    raise ResourceNotFoundError(f"Resource {resource_id!r} not found in module {module.module_index}")


def _recompute(pathway: Any, module: Any, now: datetime, transition: PathwayTransition) -> PathwayTransition:
    was_completed = bool(module.completed)
    module.completed = is_module_complete(module)

    if module.completed and not was_completed:
        transition.module_completed = True
        last_index = len(pathway.modules) - 1
        if module.module_index < last_index:
            find_module(pathway, module.module_index + 1).locked = False
            # currentModule only ever advances
            pathway.current_module = max(pathway.current_module, module.module_index + 1)
    elif was_completed and not module.completed:
        transition.module_reverted = True

    pathway.progress = compute_progress(pathway.modules)

    was_pathway_completed = pathway.status == PathwayStatus.COMPLETED.value
    all_done = bool(pathway.modules) and all(m.completed for m in pathway.modules)
    if all_done and not was_pathway_completed:
        pathway.status = PathwayStatus.COMPLETED.value
        pathway.completed_at = now
        transition.pathway_completed = True
    elif was_pathway_completed and not all_done:
        pathway.status = PathwayStatus.ACTIVE.value
        pathway.completed_at = None
        transition.pathway_reopened = True
    elif pathway.status == PathwayStatus.NOT_STARTED.value:
        pathway.status = PathwayStatus.ACTIVE.value

    pathway.last_accessed_at = now
    return transition


def record_resource(
    pathway: Any,
    module_index: int,
    resource_id: str,
    completed: bool,
    now: datetime,
) -> PathwayTransition:
    """Set one resource flag and re-derive module/pathway completion."""
    module = find_module(pathway, module_index)
    resource = find_resource(module, resource_id)
    transition = PathwayTransition(module_index=module_index)

    if completed and not resource.completed:
        transition.resource_completed = True
    resource.completed = completed
    resource.completed_at = now if completed else None

    return _recompute(pathway, module, now, transition)


def record_quiz(pathway: Any, module_index: int, score: float, now: datetime) -> PathwayTransition:
    """Record a quiz attempt on the module.

    A failing score is still recorded (``quiz_completed`` with the score)
    but leaves the module incomplete; the learner may reset and retry.
    """
    if score < 0 or score > 100:
        raise ValueError(f"score must be between 0 and 100, got {score}")
    module = find_module(pathway, module_index)
    module.quiz_completed = True
    module.quiz_score = score
    module.quiz_completed_at = now
    return _recompute(pathway, module, now, PathwayTransition(module_index=module_index))


def reset_quiz(pathway: Any, module_index: int, now: datetime) -> PathwayTransition:
    """Clear the quiz sub-record. A completed module reverts to incomplete."""
    module = find_module(pathway, module_index)
    module.quiz_completed = False
    module.quiz_score = None
    module.quiz_completed_at = None
    return _recompute(pathway, module, now, PathwayTransition(module_index=module_index))
