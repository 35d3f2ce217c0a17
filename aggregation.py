"""
Weights, summaries and the cumulative S-curve.

Only leaf tasks (tasks without children) that have a usable plan interval
take part. Weights are percentages of the project scope; the scope is
measured in cost when any such leaf has a cost, otherwise in plan days.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd

from date_utils import add_days, days_between, today as current_date

WEIGHT_BASES = ('cost', 'duration')


def aggregated_leaves(index):
    return [t for t in index.leaves() if t.has_valid_plan]


def weight_basis(leaves):
    return 'cost' if any((t.cost or 0) > 0 for t in leaves) else 'duration'


def task_scope(task, basis):
    if basis == 'cost':
        return max(0, task.cost or 0)
    return task.duration_days


@dataclass(frozen=True)
class Weights:
    basis: str
    total_scope: float
    by_id: dict

    def weight_of(self, task_id):
        return self.by_id.get(task_id, 0.0)


def compute_weights(index, basis=None):
    if basis is not None and basis not in WEIGHT_BASES:
        raise ValueError(f"Unknown weight basis '{basis}' (expected 'cost' or 'duration')")
    leaves = aggregated_leaves(index)
    basis = basis or weight_basis(leaves)
    scopes = {t.id: task_scope(t, basis) for t in leaves}
    total = sum(scopes.values())
    if total > 0:
        by_id = {task_id: scope / total * 100 for task_id, scope in scopes.items()}
    else:
        by_id = {task_id: 0.0 for task_id in scopes}
    return Weights(basis, total, by_id)


# --- Summaries ---

@dataclass(frozen=True)
class GroupSummary:
    count: int
    total_cost: float
    total_weight: float
    progress: float
    plan_start: object = None
    plan_end: object = None
    actual_start: object = None
    actual_end: object = None


def _plan_range(leaves):
    if not leaves:
        return None, None
    return min(t.plan_start for t in leaves), max(t.plan_end for t in leaves)


def group_summary(index, group_id, weights):
    """Aggregate of a group's leaf descendants; a group without any is all zeros."""
    leaves = [t for t in index.get_leaf_descendants(group_id) if t.has_valid_plan]
    if not leaves:
        return GroupSummary(0, 0, 0, 0)

    total_weight = sum(weights.weight_of(t.id) for t in leaves)
    if total_weight > 0:
        progress = sum((t.progress or 0) * weights.weight_of(t.id) for t in leaves) / total_weight
    else:
        progress = sum(t.progress or 0 for t in leaves) / len(leaves)

    actual_start = actual_end = None
    for task in leaves:
        if task.actual_start is None:
            continue
        start, end = task.actual_interval
        actual_start = start if actual_start is None else min(actual_start, start)
        actual_end = end if actual_end is None else max(actual_end, end)

    plan_start, plan_end = _plan_range(leaves)
    return GroupSummary(
        count=len(leaves),
        total_cost=sum(t.cost or 0 for t in leaves),
        total_weight=total_weight,
        progress=progress,
        plan_start=plan_start,
        plan_end=plan_end,
        actual_start=actual_start,
        actual_end=actual_end,
    )


@dataclass(frozen=True)
class CategorySummary:
    count: int
    total_cost: float
    total_weight: float
    avg_progress: float
    plan_start: object = None
    plan_end: object = None

    @property
    def plan_days(self):
        if self.plan_start is None:
            return 0
        return days_between(self.plan_end, self.plan_start) + 1


def category_summary(index, weights, category, subcategory=None, subsubcategory=None):
    """
    Simple-mean summary of the leaves filed under a category, optionally
    narrowed to one subcategory and sub-subcategory.
    """
    def matches(task):
        if (task.category or '') != category:
            return False
        if subcategory is not None and (task.subcategory or '') != subcategory:
            return False
        if subsubcategory is not None and (task.subsubcategory or '') != subsubcategory:
            return False
        return True

    leaves = [t for t in aggregated_leaves(index) if matches(t)]
    if not leaves:
        return CategorySummary(0, 0, 0, 0)
    plan_start, plan_end = _plan_range(leaves)
    return CategorySummary(
        count=len(leaves),
        total_cost=sum(t.cost or 0 for t in leaves),
        total_weight=sum(weights.weight_of(t.id) for t in leaves),
        avg_progress=sum(t.progress or 0 for t in leaves) / len(leaves),
        plan_start=plan_start,
        plan_end=plan_end,
    )


# --- S-Curve ---

@dataclass(frozen=True)
class SCurve:
    """
    One point per day of the time range: cumulative percent complete
    through the end of that day. `actual` is None after `actual_cutoff`.
    """

    dates: list
    plan: np.ndarray
    actual: list
    actual_cutoff: object
    total_scope: float

    def to_frame(self):
        return pd.DataFrame(
            {'plan': self.plan, 'actual': pd.array(self.actual, dtype='Float64')},
            index=pd.DatetimeIndex(self.dates, name='date'),
        )

    def plan_at(self, d):
        """Cumulative planned percent as of the end of day d."""
        if not self.dates or d < self.dates[0]:
            return 0.0
        position = min(days_between(d, self.dates[0]), len(self.dates) - 1)
        return float(self.plan[position])


def _spread(buckets, first_day, days, amount, carry_early=False):
    """Adds amount evenly over `days` buckets starting at first_day; days outside are dropped."""
    daily = amount / max(1, days)
    size = len(buckets)
    lo = max(0, first_day)
    hi = min(size, first_day + days)
    if hi > lo:
        buckets[lo:hi] += daily
    if carry_early and first_day < 0 and size > 0:
        buckets[0] += daily * min(days, -first_day)


def actual_cutoff(leaves, today=None):
    """Last day with known actual progress, or None when there is none."""
    today = today or current_date()
    cutoff = None
    for task in leaves:
        known = task.actual_end
        if known is None and task.status == 'completed':
            known = task.actual_start
        if known is not None and (cutoff is None or known > cutoff):
            cutoff = known
    if any(t.status == 'in-progress' for t in leaves):
        if cutoff is None or today > cutoff:
            cutoff = today
    return cutoff


def compute_s_curve(index, time_range, weights=None, today=None):
    today = today or current_date()
    weights = weights or compute_weights(index)
    leaves = aggregated_leaves(index)
    size = time_range.days
    plan = np.zeros(size)
    actual = np.zeros(size)

    for task in leaves:
        weight = weights.weight_of(task.id)
        if weight <= 0:
            continue
        _spread(plan, days_between(task.plan_start, time_range.start), task.duration_days, weight)

        progress = task.progress or 0
        if progress <= 0:
            continue
        actual_start = task.actual_start or task.plan_start
        actual_end = task.actual_end or today
        if actual_end < actual_start:
            actual_end = actual_start
        _spread(
            actual,
            days_between(actual_start, time_range.start),
            days_between(actual_end, actual_start) + 1,
            weight * progress / 100,
            carry_early=True,
        )

    plan_curve = np.clip(np.cumsum(plan), 0, 100)
    actual_curve = np.clip(np.cumsum(actual), 0, 100)
    dates = [add_days(time_range.start, i) for i in range(size)]

    cutoff = actual_cutoff(leaves, today)
    actual_values = [
        float(value) if cutoff is not None and d <= cutoff else None
        for d, value in zip(dates, actual_curve)
    ]
    return SCurve(dates, plan_curve, actual_values, cutoff, weights.total_scope)


# --- Project ---

@dataclass(frozen=True)
class ProjectSummary:
    total_cost: float
    progress: float
    planned_progress: float
    basis: str
    task_count: int


def project_summary(index, time_range, weights=None, reference_date=None):
    reference_date = reference_date or current_date()
    weights = weights or compute_weights(index)
    leaves = aggregated_leaves(index)
    progress = sum((t.progress or 0) * weights.weight_of(t.id) for t in leaves) / 100
    curve = compute_s_curve(index, time_range, weights, today=reference_date)
    return ProjectSummary(
        total_cost=sum(t.cost or 0 for t in leaves),
        progress=progress,
        planned_progress=curve.plan_at(reference_date),
        basis=weights.basis,
        task_count=len(leaves),
    )
