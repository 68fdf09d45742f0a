"""Concurrent execution of query plans against the phone catalogue."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

import logfire
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from ..config import settings
from ..models import Phone
from .errors import QueryExecutionError
from .logging import _ensure_logfire
from .schemas import PhoneRecord, QueryBatch, QueryCondition, QueryOperator, QueryPlan, check_condition
from .series import translate_series_pattern


ROW_LIMIT = 10


def _as_contains_pattern(value: Any) -> str:
    text = str(value).strip()
    if "%" in text:
        return text
    return f"%{text}%"


def _as_list(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    return [str(value)]


_CONDITION_BUILDERS: Mapping[QueryOperator, Callable[[Any, Any], ColumnElement[bool]]] = {
    QueryOperator.EQUALS: lambda column, value: column == value,
    QueryOperator.LESS_OR_EQUAL: lambda column, value: column <= value,
    QueryOperator.GREATER_OR_EQUAL: lambda column, value: column >= value,
    QueryOperator.ILIKE: lambda column, value: column.ilike(_as_contains_pattern(value)),
    QueryOperator.OVERLAPS: lambda column, value: column.overlap(_as_list(value)),
    QueryOperator.CONTAINS: lambda column, value: column.contains(_as_list(value)),
    QueryOperator.PATTERN: lambda column, value: column.ilike(translate_series_pattern(str(value))),
}


def build_condition(condition: QueryCondition) -> ColumnElement[bool]:
    """Translate one condition into a SQL expression.

    Raises ``InvalidConditionError`` for unknown fields or operators the field
    does not support.
    """

    check_condition(condition.field, condition.operator)
    column = getattr(Phone, condition.field)
    return _CONDITION_BUILDERS[condition.operator](column, condition.value)


def build_statement(plan: QueryPlan, *, limit: int = ROW_LIMIT) -> Select:
    """Compile a plan into a rating-ordered, row-limited select."""

    statement = select(Phone)
    for condition in plan.conditions:
        statement = statement.where(build_condition(condition))
    return statement.order_by(Phone.rating.desc().nulls_last(), Phone.id).limit(limit)


@dataclass(slots=True)
class PlanOutcome:
    """Records returned by one plan, or the error that stopped it."""

    plan: QueryPlan
    records: List[PhoneRecord] = field(default_factory=list)
    error: Optional[QueryExecutionError] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(slots=True)
class BatchResult:
    outcomes: List[PlanOutcome]
    records: List[PhoneRecord]

    @property
    def failed_plans(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.failed)


def merge_records(outcomes: Iterable[PlanOutcome]) -> List[PhoneRecord]:
    """Concatenate plan results in plan order, keeping the first copy of each phone."""

    seen: set[tuple[str, str, float]] = set()
    merged: List[PhoneRecord] = []
    for outcome in outcomes:
        for record in outcome.records[:ROW_LIMIT]:
            if record.natural_key in seen:
                continue
            seen.add(record.natural_key)
            merged.append(record)
    return merged


class QueryExecutor:
    """Runs every plan of a batch concurrently, one session per plan."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._timeout = timeout_seconds or settings.query_timeout_seconds

    async def execute(self, batch: QueryBatch) -> List[PhoneRecord]:
        result = await self.execute_detailed(batch)
        return result.records

    async def execute_detailed(self, batch: QueryBatch) -> BatchResult:
        """Execute all plans and merge their rows.

        Statements are built before any query runs, so an invalid condition
        raises without touching the store. A plan that fails at execution time
        contributes no records and does not affect the other plans.
        """

        _ensure_logfire()
        statements = [build_statement(plan) for plan in batch.plans]

        with logfire.span("phone_advisor.execute", plans=len(statements)):
            outcomes: Sequence[PlanOutcome] = await asyncio.gather(
                *(
                    self._run_plan(index, plan, statement)
                    for index, (plan, statement) in enumerate(zip(batch.plans, statements))
                )
            )
            records = merge_records(outcomes)
            logfire.info(
                "phone_advisor.execute.merged",
                records=len(records),
                failed_plans=sum(1 for outcome in outcomes if outcome.failed),
            )

        return BatchResult(outcomes=list(outcomes), records=records)

    async def _run_plan(self, index: int, plan: QueryPlan, statement: Select) -> PlanOutcome:
        try:
            records = await asyncio.wait_for(self._fetch(statement), timeout=self._timeout)
        except Exception as exc:
            reason = "timed out" if isinstance(exc, asyncio.TimeoutError) else type(exc).__name__
            error = QueryExecutionError(plan.description or f"plan {index + 1}", reason)
            logfire.warning(
                "phone_advisor.execute.plan_failed",
                plan_index=index,
                plan=error.plan_description,
                reason=reason,
                detail=str(exc),
            )
            return PlanOutcome(plan=plan, error=error)
        return PlanOutcome(plan=plan, records=records[:ROW_LIMIT])

    async def _fetch(self, statement: Select) -> List[PhoneRecord]:
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return [PhoneRecord.model_validate(row) for row in result.scalars().all()]


__all__ = [
    "BatchResult",
    "PlanOutcome",
    "QueryExecutor",
    "ROW_LIMIT",
    "build_condition",
    "build_statement",
    "merge_records",
]
