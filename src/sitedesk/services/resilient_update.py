"""Resilient record updates with narrowing fallback strategies.

Some update paths fire server-side logic (triggers, derived columns) that
can fail for reasons unrelated to the caller's intent. Instead of failing
the whole operation, an update is described as an ordered list of
strategies, widest first. The first strategy that commits wins; a win by
any strategy after the first is a degraded success. Steps commit one by
one, so a strategy that fails halfway may still have written some fields;
the outcome reports every committed field, whichever strategy wrote it.
"""

from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.sitedesk.core.exceptions import error_text, sqlstate_of
from src.sitedesk.core.logging import get_logger

logger = get_logger(__name__)

Writer = Callable[[UUID, dict[str, Any]], Awaitable[int]]


@dataclass(frozen=True)
class UpdateStrategy:
    """A named way of writing a subset of the desired fields.

    ``steps`` are applied as separate UPDATE statements, each committed on
    its own. The strategy succeeds only if every step does.
    """

    name: str
    steps: tuple[tuple[str, ...], ...]

    @property
    def fields(self) -> frozenset[str]:
        return frozenset(name for step in self.steps for name in step)

    @classmethod
    def full(cls, fields: Iterable[str], name: str = "full_update") -> "UpdateStrategy":
        """All fields in one statement."""
        return cls(name=name, steps=(tuple(fields),))

    @classmethod
    def per_field(
        cls, groups: Iterable[Iterable[str]], name: str = "individual_fields"
    ) -> "UpdateStrategy":
        """One statement per field group, in order."""
        return cls(name=name, steps=tuple(tuple(group) for group in groups))

    @classmethod
    def subset(cls, fields: Iterable[str], name: str) -> "UpdateStrategy":
        """A single statement writing only ``fields``."""
        return cls(name=name, steps=(tuple(fields),))


@dataclass
class StrategyAttempt:
    """A failed strategy and why it failed."""

    strategy: str
    error: str
    sqlstate: str | None = None


@dataclass
class UpdateOutcome:
    """Result of a resilient update.

    Attributes:
        strategy_index: Index of the strategy that succeeded, or None.
        strategy: Name of the strategy that succeeded, or None.
        written_fields: Fields committed by any step of any attempted strategy.
        omitted_fields: Desired fields that were never committed.
        error: Error of the last failing strategy when every strategy failed.
        failed_attempts: Every strategy that failed before the outcome was decided.
    """

    strategy_index: int | None = None
    strategy: str | None = None
    written_fields: frozenset[str] = frozenset()
    omitted_fields: frozenset[str] = frozenset()
    error: str | None = None
    failed_attempts: list[StrategyAttempt] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.strategy_index is not None

    @property
    def degraded(self) -> bool:
        """True when a narrower strategy than the first one won."""
        return self.strategy_index is not None and self.strategy_index > 0


class RecordNotMatchedError(Exception):
    """An UPDATE matched no row, so nothing was written."""

    def __init__(self, target_id: UUID):
        super().__init__(f"No record with id {target_id} matched the update")
        self.target_id = target_id


class ResilientUpdater:
    """Apply an update by trying strategies from widest to narrowest."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def apply(
        self,
        writer: Writer,
        target_id: UUID,
        values: dict[str, Any],
        strategies: Sequence[UpdateStrategy],
    ) -> UpdateOutcome:
        """Write ``values`` to ``target_id`` using the first strategy that succeeds.

        Args:
            writer: Coroutine issuing ``UPDATE ... WHERE id = target_id`` with the
                given column values and returning the number of rows matched.
            target_id: Primary key of the record to update.
            values: Full desired field set.
            strategies: Ordered from most to least complete.

        Returns:
            UpdateOutcome describing which strategy won, or the last error.

        Raises:
            ValueError: If no strategies are given or a strategy names a field
                missing from ``values``.
        """
        if not strategies:
            raise ValueError("At least one update strategy is required")
        for strategy in strategies:
            unknown = strategy.fields - values.keys()
            if unknown:
                raise ValueError(
                    f"Strategy '{strategy.name}' references unknown fields: {sorted(unknown)}"
                )

        desired = frozenset(values)
        committed: set[str] = set()
        failed: list[StrategyAttempt] = []

        for index, strategy in enumerate(strategies):
            try:
                for step in strategy.steps:
                    matched = await writer(target_id, {name: values[name] for name in step})
                    if matched == 0:
                        raise RecordNotMatchedError(target_id)
                    await self.session.commit()
                    committed.update(step)
            except (SQLAlchemyError, RecordNotMatchedError) as e:
                await self.session.rollback()
                attempt = StrategyAttempt(
                    strategy=strategy.name, error=error_text(e), sqlstate=sqlstate_of(e)
                )
                failed.append(attempt)
                logger.warning(
                    "Update strategy failed",
                    target_id=str(target_id),
                    strategy=strategy.name,
                    sqlstate=attempt.sqlstate,
                    error=attempt.error,
                )
                continue

            outcome = UpdateOutcome(
                strategy_index=index,
                strategy=strategy.name,
                written_fields=frozenset(committed),
                omitted_fields=desired - committed,
                failed_attempts=failed,
            )
            if outcome.degraded:
                logger.warning(
                    "Degraded update: fields not written",
                    target_id=str(target_id),
                    strategy=strategy.name,
                    omitted_fields=sorted(outcome.omitted_fields),
                )
            return outcome

        logger.warning(
            "All update strategies failed",
            target_id=str(target_id),
            strategies=[s.name for s in strategies],
            committed_fields=sorted(committed),
        )
        return UpdateOutcome(
            written_fields=frozenset(committed),
            omitted_fields=desired - committed,
            error=failed[-1].error,
            failed_attempts=failed,
        )
