"""Tests for plan compilation and concurrent plan execution."""

from __future__ import annotations

import asyncio
import os
from typing import Callable, Dict, List

import pytest
from sqlalchemy.dialects import postgresql

os.environ.setdefault("POSTGRES_USER", "postgres")
os.environ.setdefault("POSTGRES_PASSWORD", "postgres")
os.environ.setdefault("POSTGRES_HOST", "localhost")
os.environ.setdefault("POSTGRES_PORT", "5432")
os.environ.setdefault("POSTGRES_DB", "phones")

import phone_advisor.assistant.executor as executor_module
from phone_advisor.assistant.errors import InvalidConditionError
from phone_advisor.assistant.executor import QueryExecutor, build_statement
from phone_advisor.assistant.schemas import QueryBatch, QueryCondition, QueryOperator, QueryPlan


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _silence_logfire(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(executor_module, "_ensure_logfire", lambda: None)


def _row(brand: str, model: str, price: float, rating: float = 4.0, row_id: int = 1) -> Dict:
    return {"id": row_id, "brand": brand, "model": model, "price": price, "rating": rating}


def _brand_plan(brand: str) -> QueryPlan:
    return QueryPlan(
        description=f"{brand} phones",
        conditions=[QueryCondition(field="brand", operator="ilike", value=brand)],
    )


class _Result:
    def __init__(self, rows: List[Dict]) -> None:
        self._rows = rows

    def scalars(self) -> "_Result":
        return self

    def all(self) -> List[Dict]:
        return self._rows


class _CatalogueSession:
    """Answers a statement from the brand pattern bound into it."""

    def __init__(self, handler: Callable[[str], object]) -> None:
        self._handler = handler

    async def execute(self, statement, *args, **kwargs) -> _Result:
        params = statement.compile(dialect=postgresql.dialect()).params
        pattern = next(value for key, value in params.items() if key.startswith("brand"))
        outcome = self._handler(pattern.strip("%"))
        if asyncio.iscoroutine(outcome):
            outcome = await outcome
        return _Result(outcome)


class _SessionContext:
    def __init__(self, session: _CatalogueSession) -> None:
        self._session = session

    async def __aenter__(self) -> _CatalogueSession:
        return self._session

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class _SessionFactory:
    def __init__(self, handler: Callable[[str], object]) -> None:
        self._handler = handler
        self.calls = 0

    def __call__(self) -> _SessionContext:
        self.calls += 1
        return _SessionContext(_CatalogueSession(self._handler))


def test_statement_orders_by_rating_and_limits_rows() -> None:
    plan = QueryPlan(
        conditions=[
            QueryCondition(field="brand", operator="ilike", value="Samsung"),
            QueryCondition(field="price", operator="lte", value=25000),
            QueryCondition(field="model", operator="regex", value="Galaxy A[0-9]+"),
        ]
    )

    compiled = build_statement(plan).compile(
        dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True}
    )
    sql = str(compiled).replace("%%", "%")

    assert "phones.brand ILIKE '%Samsung%'" in sql
    assert "phones.price <= 25000" in sql
    assert "phones.model ILIKE '%A%'" in sql
    assert "ORDER BY phones.rating DESC NULLS LAST, phones.id" in sql
    assert "LIMIT 10" in sql


def test_array_operators_compile_to_postgres_array_ops() -> None:
    plan = QueryPlan(
        conditions=[
            QueryCondition(field="colours", operator="overlaps", value=["Blue", "Black"]),
            QueryCondition(field="connectivity", operator="cs", value="5G"),
        ]
    )

    sql = str(build_statement(plan).compile(dialect=postgresql.dialect()))

    assert "phones.colours &&" in sql
    assert "phones.connectivity @>" in sql


def test_invalid_condition_fails_at_build_time() -> None:
    bad = QueryCondition.model_construct(field="price", operator=QueryOperator.ILIKE, value="cheap")
    plan = QueryPlan.model_construct(description="bad", conditions=[bad])

    with pytest.raises(InvalidConditionError):
        build_statement(plan)


@pytest.mark.anyio
async def test_invalid_batch_never_reaches_the_store() -> None:
    factory = _SessionFactory(lambda brand: [])
    bad = QueryCondition.model_construct(field="nonexistent", operator=QueryOperator.EQUALS, value=1)
    batch = QueryBatch.model_construct(
        plans=[_brand_plan("Samsung"), QueryPlan.model_construct(description="bad", conditions=[bad])],
        is_adversarial=False,
        is_off_topic=False,
    )

    with pytest.raises(InvalidConditionError):
        await QueryExecutor(factory, timeout_seconds=1).execute(batch)

    assert factory.calls == 0


@pytest.mark.anyio
async def test_merge_keeps_plan_order_and_drops_duplicates() -> None:
    catalogue = {
        "Samsung": [_row("Samsung", "Galaxy A55", 24999, 4.5, 1), _row("Samsung", "Galaxy M35", 17999, 4.2, 2)],
        "Galaxy": [_row("Samsung", "Galaxy A55", 24999, 4.5, 1), _row("Samsung", "Galaxy S23 FE", 29999, 4.4, 3)],
    }
    factory = _SessionFactory(lambda brand: catalogue[brand])
    batch = QueryBatch(plans=[_brand_plan("Samsung"), _brand_plan("Galaxy")])

    records = await QueryExecutor(factory, timeout_seconds=1).execute(batch)

    assert [record.model for record in records] == ["Galaxy A55", "Galaxy M35", "Galaxy S23 FE"]
    assert factory.calls == 2


@pytest.mark.anyio
async def test_rows_beyond_the_per_plan_limit_are_not_merged() -> None:
    rows = [_row("Nokia", f"G{index}", 10000 + index, row_id=index) for index in range(12)]
    factory = _SessionFactory(lambda brand: rows)

    records = await QueryExecutor(factory, timeout_seconds=1).execute(
        QueryBatch(plans=[_brand_plan("Nokia")])
    )

    assert len(records) == 10


@pytest.mark.anyio
async def test_failed_plan_contributes_nothing() -> None:
    def handler(brand: str):
        if brand == "Apple":
            raise ConnectionError("connection reset")
        return [_row(brand, f"{brand} One", 19999)]

    batch = QueryBatch(plans=[_brand_plan("Apple"), _brand_plan("Vivo"), _brand_plan("Oppo")])

    result = await QueryExecutor(_SessionFactory(handler), timeout_seconds=1).execute_detailed(batch)

    assert [outcome.failed for outcome in result.outcomes] == [True, False, False]
    assert result.outcomes[0].error.plan_description == "Apple phones"
    assert [record.brand for record in result.records] == ["Vivo", "Oppo"]


@pytest.mark.anyio
async def test_slow_plan_times_out_without_blocking_others() -> None:
    async def handler(brand: str):
        if brand == "Nokia":
            await asyncio.sleep(5)
        return [_row(brand, f"{brand} X", 14999)]

    batch = QueryBatch(plans=[_brand_plan("Nokia"), _brand_plan("Realme")])

    result = await QueryExecutor(_SessionFactory(handler), timeout_seconds=0.05).execute_detailed(batch)

    assert result.outcomes[0].error is not None
    assert result.outcomes[0].error.reason == "timed out"
    assert [record.brand for record in result.records] == ["Realme"]


@pytest.mark.anyio
async def test_plans_run_concurrently() -> None:
    started: List[str] = []
    both_started = asyncio.Event()

    async def handler(brand: str):
        started.append(brand)
        if len(started) == 2:
            both_started.set()
        await both_started.wait()
        return [_row(brand, f"{brand} 1", 9999)]

    batch = QueryBatch(plans=[_brand_plan("Motorola"), _brand_plan("Xiaomi")])

    result = await QueryExecutor(_SessionFactory(handler), timeout_seconds=1).execute_detailed(batch)

    assert result.failed_plans == 0
    assert sorted(started) == ["Motorola", "Xiaomi"]


@pytest.mark.anyio
async def test_repeated_execution_is_identical_and_unique() -> None:
    rows = {
        "Vivo": [_row("Vivo", "V30", 33999, 4.4, 1), _row("Vivo", "T3", 19999, 4.2, 2)],
        "V3": [_row("Vivo", "V30", 33999, 4.4, 1)],
    }
    executor = QueryExecutor(_SessionFactory(lambda brand: rows[brand]), timeout_seconds=1)
    batch = QueryBatch(plans=[_brand_plan("Vivo"), _brand_plan("V3")])

    first = await executor.execute(batch)
    second = await executor.execute(batch)

    assert first == second
    assert len({record.natural_key for record in first}) == len(first) == 2
