"""Read-only groupings of orders for the kanban board"""

from typing import Dict, Iterable, List

from .aggregate import Order
from .status import DisplayStage, stage_of


def group_by_stage(orders: Iterable[Order]) -> Dict[DisplayStage, List[Order]]:
    """
    Group orders into kanban columns.

    Every stage is present in the result, in board order, even when empty.
    Each order lands in exactly one column and keeps its input order there.
    """
    grouped = {stage: [] for stage in DisplayStage}
    for order in orders:
        grouped[stage_of(order.status)].append(order)
    return grouped


def count_by_stage(orders: Iterable[Order]) -> Dict[DisplayStage, int]:
    return {stage: len(items) for stage, items in group_by_stage(orders).items()}
