"""Tree Assembly — turns flat parent-pointer operations (or cached nested records) into trees.

Invariants:
    - One assembly algorithm for both sources: persisted rows and cached records are reduced
      to (roots, flat operations) and go through assemble_forest(), so shapes never diverge
    - Sibling order is the order of the flat input (repositories load by created_at)
    - collect_root_closure() keeps an operation iff its parent_root_id is the root, or its
      parent_operation_id is already in the closure (fixed point)
    - Iterative throughout: long operation chains never hit the recursion limit

Design Decisions:
    - Pure functions over entity objects: repository and service both call in, neither owns it
    - Orphan operations (parent outside the input) are silently left unattached
"""

from collections import defaultdict
from datetime import datetime
from typing import Iterable

from calctree.core.calculation_operation import CalculationOperation
from calctree.core.calculation_root import CalculationRoot


def group_by_parent(
    operations: Iterable[CalculationOperation],
) -> tuple[dict[str, list[CalculationOperation]], dict[str, list[CalculationOperation]]]:
    """Index operations by parent root id and by parent operation id."""
    by_root: dict[str, list[CalculationOperation]] = defaultdict(list)
    by_operation: dict[str, list[CalculationOperation]] = defaultdict(list)
    for op in operations:
        if op.parent_root_id:
            by_root[op.parent_root_id].append(op)
        if op.parent_operation_id:
            by_operation[op.parent_operation_id].append(op)
    return by_root, by_operation


def assemble_forest(
    roots: list[CalculationRoot], operations: list[CalculationOperation],
) -> list[CalculationRoot]:
    """Attach direct operations to each root and children to every operation."""
    by_root, by_operation = group_by_parent(operations)
    for op in operations:
        op.set_children(by_operation.get(op.id, []))
    for root in roots:
        root.set_operations(by_root.get(root.id, []))
    return roots


def collect_root_closure(
    root_id: str, operations: list[CalculationOperation],
) -> list[CalculationOperation]:
    """All operations transitively reachable from root_id, in input order."""
    members = {op.id for op in operations if op.parent_root_id == root_id}
    found_new = True
    while found_new:
        found_new = False
        for op in operations:
            if (
                op.parent_operation_id in members
                and op.id not in members
            ):
                members.add(op.id)
                found_new = True
    return [op for op in operations if op.id in members]


def assemble_tree(
    root: CalculationRoot, operations: list[CalculationOperation],
) -> CalculationRoot:
    """Assemble one root's tree out of an unfiltered operation list."""
    assemble_forest([root], collect_root_closure(root.id, operations))
    return root


# ─── Cache Reconstitution ────────────────────────────────────────

def _parse_timestamp(value: datetime | str) -> datetime:
    return value if isinstance(value, datetime) else datetime.fromisoformat(value)


def _operation_scalars(record: dict) -> CalculationOperation:
    return CalculationOperation.from_persisted(
        id=record["id"],
        parent_root_id=record.get("parent_root_id"),
        parent_operation_id=record.get("parent_operation_id"),
        operator=record["operator"],
        operand=record["operand"],
        result=record["result"],
        user_id=record["user_id"],
        username=record.get("username"),
        created_at=_parse_timestamp(record["created_at"]),
        updated_at=_parse_timestamp(record["updated_at"]),
    )


def _flatten_operation_records(records: list[dict]) -> list[CalculationOperation]:
    """Depth-first pre-order walk: siblings keep their recorded order."""
    flat: list[CalculationOperation] = []
    stack = list(reversed(records))
    while stack:
        record = stack.pop()
        flat.append(_operation_scalars(record))
        stack.extend(reversed(record.get("children", [])))
    return flat


def root_from_record(record: dict) -> CalculationRoot:
    """Rebuild a live root (with its whole tree) from CalculationRoot.serialize() output."""
    root = CalculationRoot.from_persisted(
        id=record["id"],
        value=record["value"],
        user_id=record["user_id"],
        username=record.get("username"),
        created_at=_parse_timestamp(record["created_at"]),
        updated_at=_parse_timestamp(record["updated_at"]),
    )
    operations = _flatten_operation_records(record.get("operations", []))
    assemble_forest([root], operations)
    return root


def roots_from_records(records: list[dict]) -> list[CalculationRoot]:
    return [root_from_record(record) for record in records]


def operation_from_record(record: dict) -> CalculationOperation:
    """Rebuild a live operation subtree from CalculationOperation.serialize() output."""
    operations = _flatten_operation_records([record])
    assemble_forest([], operations)
    return operations[0]
