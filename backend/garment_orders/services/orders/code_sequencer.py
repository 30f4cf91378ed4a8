"""
Sequential business code generation with optimistic retry.

Codes are derived from the rows already stored: scan the codes of a family
(case-insensitive prefix match), parse the numeric suffix, take the maximum
and add one. Legacy order codes that embed a date segment
(``VN-20240115-000123``) still contribute their suffix.

Scan-then-insert is not atomic, so every insert of a freshly sequenced row
goes through ``insert_with_sequenced_code``: each attempt runs inside a
SAVEPOINT, a uniqueness violation rolls back only that attempt and the code
is recomputed. No lock or counter table is involved.
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from garment_orders.core.config import get_settings
from garment_orders.core.logging import get_logger
from garment_orders.database.base import Base
from garment_orders.database.errors import is_unique_violation
from garment_orders.services.errors import ConflictError, TransientRaceError
from garment_orders.services.orders.enums import OrderType

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=Base)


@dataclass(frozen=True)
class CodeFamily:
    """
    A family of codes sharing a prefix and numbering.

    Attributes:
        name: Family name used in logs and errors
        prefix: Literal prefix, matched case-insensitively
        pattern: Regex whose first group is the numeric suffix
        width: Zero-padding width of the rendered suffix
        floor: Sequence value assumed when no code exists yet
    """

    name: str
    prefix: str
    pattern: re.Pattern
    width: int
    floor: int = 0

    def parse(self, code: Optional[str]) -> Optional[int]:
        if not code:
            return None
        match = self.pattern.match(code.strip())
        if match is None:
            return None
        return int(match.group(1))

    def render(self, sequence: int) -> str:
        return f"{self.prefix}{sequence:0{self.width}d}"

    def next_sequence(self, codes: Iterable[Optional[str]]) -> int:
        """
        Compute the sequence that follows the highest parsable code.

        Args:
            codes: Existing codes; unparsable entries are ignored

        Returns:
            Next sequence number, at least ``floor + 1``
        """
        highest = self.floor
        for code in codes:
            value = self.parse(code)
            if value is not None and value > highest:
                highest = value
        return highest + 1


def order_code_family(order_type: OrderType) -> CodeFamily:
    """Code family for orders: VN-000001 (6 digits) or VI-0001 (4 digits)."""
    prefix = f"{order_type.value}-"
    return CodeFamily(
        name=f"order:{order_type.value}",
        prefix=prefix,
        pattern=re.compile(
            rf"^{re.escape(prefix)}(?:[0-9]{{8}}-)?([0-9]+)$", re.IGNORECASE
        ),
        width=order_type.sequence_width,
    )


PREFACTURA_CODES = CodeFamily(
    name="prefactura",
    prefix="PRE",
    pattern=re.compile(r"^PRE([0-9]+)$", re.IGNORECASE),
    width=5,
    floor=10000,
)


def client_code_family(prefix: str) -> CodeFamily:
    """Client codes: CN10001, CE10001, EM10001."""
    return CodeFamily(
        name=f"client:{prefix}",
        prefix=prefix,
        pattern=re.compile(rf"^{re.escape(prefix)}([0-9]+)$", re.IGNORECASE),
        width=5,
        floor=10000,
    )


async def next_code(
    session: AsyncSession,
    column: InstrumentedAttribute,
    family: CodeFamily,
) -> str:
    """
    Read the current codes of a family and render the next one.

    Runs inside the caller's transaction.

    Args:
        session: Active database session
        column: Mapped column holding the codes (e.g. ``Order.order_code``)
        family: Code family to sequence

    Returns:
        Next code for the family
    """
    result = await session.execute(
        select(column).where(column.ilike(f"{family.prefix}%"))
    )
    return family.render(family.next_sequence(result.scalars()))


async def insert_with_sequenced_code(
    session: AsyncSession,
    column: InstrumentedAttribute,
    family: CodeFamily,
    build: Callable[[str], ModelT],
    attempts: Optional[int] = None,
) -> ModelT:
    """
    Insert a row carrying a freshly sequenced code, retrying on collisions.

    Args:
        session: Active database session
        column: Mapped column holding the codes
        family: Code family to sequence
        build: Factory turning a code into an unsaved model instance
        attempts: Insert attempts, defaults to ``code_retry_attempts``

    Returns:
        The flushed model instance

    Raises:
        ConflictError: If every attempt collided with an existing code
        IntegrityError: For any other integrity failure
    """
    attempts = attempts or get_settings().code_retry_attempts
    await session.flush()

    last_race: Optional[TransientRaceError] = None
    for attempt in range(1, attempts + 1):
        code = await next_code(session, column, family)
        row = build(code)
        try:
            async with session.begin_nested():
                session.add(row)
                await session.flush()
        except IntegrityError as e:
            if not is_unique_violation(e):
                raise
            last_race = TransientRaceError(
                "Sequenced code already taken",
                family=family.name,
                code=code,
                attempt=attempt,
            )
            logger.warning(
                "Sequenced code collided, retrying",
                family=family.name,
                code=code,
                attempt=attempt,
                max_attempts=attempts,
            )
            continue

        logger.debug(
            "Sequenced code assigned",
            family=family.name,
            code=code,
            attempt=attempt,
        )
        return row

    raise ConflictError(
        f"Could not assign a unique {family.name} code after {attempts} attempts",
        family=family.name,
        attempts=attempts,
        last_code=last_race.context.get("code") if last_race else None,
    ) from last_race
