"""SQLAlchemy Repository & Unit of Work — persistence on in-memory SQLite.

Invariants:
    - Trees load from flat rows with the right shape and creation-order siblings
    - ON DELETE CASCADE removes every descendant (foreign keys enforced)
    - One-parent CHECK and FK violations surface as DatabaseError
    - run_in_transaction commits on return, rolls back on exception, reuses an open transaction
"""

from datetime import datetime, timedelta, timezone

import pytest

from calctree.core.calculation_operation import CalculationOperation
from calctree.core.calculation_root import CalculationRoot
from calctree.core.errors import DatabaseError
from calctree.core.operator import Operator
from calctree.infrastructure.unit_of_work import SqlAlchemyUnitOfWork

T0 = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


def _root(id, value=100.0, minutes=0):
    at = T0 + timedelta(minutes=minutes)
    return CalculationRoot.from_persisted(
        id=id, value=value, user_id="u1", username="alice",
        created_at=at, updated_at=at,
    )


def _op(id, root=None, parent=None, operator="ADD", operand=1.0, result=1.0, minutes=0):
    at = T0 + timedelta(minutes=minutes)
    return CalculationOperation.from_persisted(
        id=id, parent_root_id=root, parent_operation_id=parent,
        operator=operator, operand=operand, result=result, user_id="u1",
        created_at=at, updated_at=at,
    )


@pytest.fixture
def uow(session_manager):
    return SqlAlchemyUnitOfWork(session_manager)


async def _seed(uow, *entities):
    async def save(repo):
        for entity in entities:
            if isinstance(entity, CalculationRoot):
                await repo.save_root(entity)
            else:
                await repo.save_operation(entity)
    await uow.run_in_transaction(save)


# ==============================================================================
# Repository
# ==============================================================================


async def test_save_and_find_root(uow):
    await _seed(uow, _root("r1", value=12.5))
    root = await uow.run_in_transaction(lambda repo: repo.find_root_by_id("r1"))
    assert root.value == 12.5
    assert root.username == "alice"
    assert root.operations == ()


async def test_find_missing_returns_none(uow):
    assert await uow.run_in_transaction(lambda repo: repo.find_root_by_id("x")) is None
    assert await uow.run_in_transaction(lambda repo: repo.find_operation_by_id("x")) is None
    assert await uow.run_in_transaction(
        lambda repo: repo.find_root_with_operations("x"),
    ) is None


async def test_operation_round_trip_keeps_operator_and_numbers(uow):
    await _seed(
        uow, _root("r1"),
        _op("o1", root="r1", operator="DIVIDE", operand=4.0, result=25.0),
    )
    op = await uow.run_in_transaction(lambda repo: repo.find_operation_by_id("o1"))
    assert op.operator is Operator.DIVIDE
    assert (op.operand, op.result) == (4.0, 25.0)
    assert op.parent_root_id == "r1"
    assert op.parent_operation_id is None


async def test_find_root_with_operations_builds_tree(uow):
    await _seed(
        uow,
        _root("r1"), _root("r2", minutes=1),
        _op("a", root="r1", minutes=1),
        _op("b", parent="a", minutes=2),
        _op("c", root="r1", minutes=3),
        _op("d", parent="b", minutes=4),
        _op("z", root="r2", minutes=5),
    )
    root = await uow.run_in_transaction(
        lambda repo: repo.find_root_with_operations("r1"),
    )
    assert [op.id for op in root.operations] == ["a", "c"]
    assert [op.id for op in root.operations[0].children] == ["b"]
    assert [op.id for op in root.operations[0].children[0].children] == ["d"]
    assert root.total_operation_count() == 4


async def test_find_all_roots_newest_first(uow):
    await _seed(
        uow, _root("old"), _root("new", minutes=10),
        _op("a", root="old", minutes=11), _op("b", root="new", minutes=12),
    )
    roots = await uow.run_in_transaction(
        lambda repo: repo.find_all_roots_with_operations(),
    )
    assert [r.id for r in roots] == ["new", "old"]
    assert [op.id for op in roots[1].operations] == ["a"]


async def test_find_operations_by_root_and_children(uow):
    await _seed(
        uow, _root("r1"),
        _op("a", root="r1", minutes=1), _op("b", root="r1", minutes=2),
        _op("c", parent="a", minutes=3), _op("d", parent="a", minutes=4),
    )
    direct = await uow.run_in_transaction(
        lambda repo: repo.find_operations_by_root_id("r1"),
    )
    children = await uow.run_in_transaction(
        lambda repo: repo.find_child_operations("a"),
    )
    assert [op.id for op in direct] == ["a", "b"]
    assert [op.id for op in children] == ["c", "d"]


async def test_delete_root_cascades(uow):
    await _seed(
        uow, _root("r1"), _root("r2"),
        _op("a", root="r1"), _op("b", parent="a", minutes=1),
        _op("c", parent="b", minutes=2), _op("z", root="r2"),
    )
    await uow.run_in_transaction(lambda repo: repo.delete_root("r1"))

    for op_id in ("a", "b", "c"):
        assert await uow.run_in_transaction(
            lambda repo, op_id=op_id: repo.find_operation_by_id(op_id),
        ) is None
    assert await uow.run_in_transaction(lambda repo: repo.find_operation_by_id("z"))


async def test_delete_operation_cascades_to_subtree(uow):
    await _seed(
        uow, _root("r1"),
        _op("a", root="r1"), _op("b", parent="a", minutes=1), _op("c", root="r1", minutes=2),
    )
    await uow.run_in_transaction(lambda repo: repo.delete_operation("a"))
    root = await uow.run_in_transaction(
        lambda repo: repo.find_root_with_operations("r1"),
    )
    assert [op.id for op in root.operations] == ["c"]
    assert root.total_operation_count() == 1


async def test_one_parent_check_constraint(uow):
    await _seed(uow, _root("r1"))
    with pytest.raises(DatabaseError):
        await _seed(uow, _op("both", root="r1", parent="r1"))
    with pytest.raises(DatabaseError):
        await _seed(uow, _op("neither"))


async def test_unknown_parent_violates_foreign_key(uow):
    with pytest.raises(DatabaseError) as exc_info:
        await _seed(uow, _op("o1", root="missing"))
    assert exc_info.value.http_status == 503


# ==============================================================================
# Unit of Work
# ==============================================================================


async def test_commit_is_visible_to_next_transaction(uow):
    await _seed(uow, _root("r1"))
    assert await uow.run_in_transaction(lambda repo: repo.find_root_by_id("r1"))


async def test_exception_rolls_back_everything(uow):
    async def body(repo):
        await repo.save_root(_root("r1"))
        await repo.save_operation(_op("a", root="r1"))
        raise ValueError("abort")

    with pytest.raises(ValueError):
        await uow.run_in_transaction(body)

    assert await uow.run_in_transaction(lambda repo: repo.find_root_by_id("r1")) is None


async def test_nested_call_reuses_active_repository(uow):
    seen = []

    async def inner(repo):
        seen.append(repo)
        await repo.save_operation(_op("a", root="r1"))

    async def outer(repo):
        seen.append(repo)
        await repo.save_root(_root("r1"))
        await uow.run_in_transaction(inner)
        raise RuntimeError("roll back both")

    with pytest.raises(RuntimeError):
        await uow.run_in_transaction(outer)

    assert seen[0] is seen[1]
    assert await uow.run_in_transaction(lambda repo: repo.find_operation_by_id("a")) is None


async def test_repository_is_released_after_transaction(uow):
    first = await uow.run_in_transaction(lambda repo: _identity(repo))
    second = await uow.run_in_transaction(lambda repo: _identity(repo))
    assert first is not second


async def _identity(repo):
    return repo
