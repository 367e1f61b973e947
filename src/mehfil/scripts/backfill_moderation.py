"""Backfill moderation fields on Mehfil rows written before moderation existed.

Legacy rows may carry historical category spellings, an unknown status, no
moderation reason, or a reaction count that drifted from the reaction rows.
Run with ``--dry-run`` to print the summary without writing anything.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import asdict, dataclass

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from mehfil.core.settings import settings
from mehfil.models import Category, Reaction, Thought, ThoughtStatus, User
from mehfil.services.classifier import normalize_category

BACKFILL_REASON = "Backfilled legacy Mehfil record."
CANONICAL_CATEGORIES = tuple(category.value for category in Category)
CANONICAL_STATUSES = tuple(status.value for status in ThoughtStatus)


@dataclass(frozen=True)
class BackfillSummary:
    """Counts of rows still needing a backfill."""

    thoughts_legacy_category: int
    thoughts_unknown_status: int
    thoughts_missing_reason: int
    thoughts_count_drift: int
    users_negative_strikes: int


def _reaction_count():  # type: ignore[no-untyped-def]
    return (
        select(func.count(Reaction.id))
        .where(Reaction.thought_id == Thought.id)
        .scalar_subquery()
    )


async def _count(session: AsyncSession, model: type, *criteria) -> int:  # type: ignore[no-untyped-def]
    result = await session.execute(select(func.count()).select_from(model).where(*criteria))
    return int(result.scalar_one())


async def collect_summary(session: AsyncSession) -> BackfillSummary:
    """Return how many rows each backfill step would touch."""
    return BackfillSummary(
        thoughts_legacy_category=await _count(
            session, Thought, Thought.category.not_in(CANONICAL_CATEGORIES)
        ),
        thoughts_unknown_status=await _count(
            session, Thought, Thought.status.not_in(CANONICAL_STATUSES)
        ),
        thoughts_missing_reason=await _count(
            session, Thought, Thought.moderation_reason.is_(None)
        ),
        thoughts_count_drift=await _count(
            session, Thought, Thought.relatable_count != _reaction_count()
        ),
        users_negative_strikes=await _count(session, User, User.spam_strike_count < 0),
    )


async def apply_backfill(session: AsyncSession) -> dict[str, int]:
    """Rewrite legacy rows in place and return the number changed per step."""
    changed: dict[str, int] = {}

    legacy = await session.execute(
        select(Thought.category).where(Thought.category.not_in(CANONICAL_CATEGORIES)).distinct()
    )
    category_rows = 0
    for (raw,) in legacy.all():
        try:
            target = normalize_category(raw)
        except ValueError:
            target = Category.ACADEMIC
        result = await session.execute(
            update(Thought)
            .where(Thought.category == raw)
            .values(category=target.value)
            .execution_options(synchronize_session=False)
        )
        category_rows += int(result.rowcount or 0)
    changed["thoughts category set"] = category_rows

    steps = {
        "thoughts status set": update(Thought)
        .where(Thought.status.not_in(CANONICAL_STATUSES))
        .values(status=ThoughtStatus.APPROVED.value),
        "thoughts moderation_reason set": update(Thought)
        .where(Thought.moderation_reason.is_(None))
        .values(moderation_reason=BACKFILL_REASON),
        "thoughts relatable_count reconciled": update(Thought)
        .where(Thought.relatable_count != _reaction_count())
        .values(relatable_count=_reaction_count()),
        "users spam_strike_count reset": update(User)
        .where(User.spam_strike_count < 0)
        .values(spam_strike_count=0),
    }
    for label, stmt in steps.items():
        result = await session.execute(stmt.execution_options(synchronize_session=False))
        changed[label] = int(result.rowcount or 0)

    await session.commit()
    return changed


def _print_summary(label: str, summary: BackfillSummary) -> None:
    print(f"\n{label}")
    for name, value in asdict(summary).items():
        print(f"- {name.replace('_', ' ')}: {value}")


async def run(db_url: str, *, dry_run: bool) -> dict[str, int]:
    """Run the backfill against ``db_url``; returns the per-step changes."""
    print(f"[mehfil-backfill] starting{' (dry-run)' if dry_run else ''}...")
    engine = create_async_engine(db_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with session_factory() as session:
            _print_summary("Before backfill", await collect_summary(session))
            if dry_run:
                print("\n[mehfil-backfill] dry-run complete. No changes were written.")
                return {}

            changed = await apply_backfill(session)
            print("\nUpdated records")
            for label, count in changed.items():
                print(f"- {label}: {count}")
            _print_summary("After backfill", await collect_summary(session))
    finally:
        await engine.dispose()

    print("\n[mehfil-backfill] complete.")
    return changed


def main() -> None:
    parser = argparse.ArgumentParser(description="Backfill Mehfil moderation fields")
    parser.add_argument("--dry-run", action="store_true", help="Only print what would change.")
    parser.add_argument(
        "--url",
        default=None,
        help="Override database URL (defaults to DATABASE_URL)",
    )
    args = parser.parse_args()

    try:
        asyncio.run(run(args.url or settings.database_url, dry_run=args.dry_run))
    except Exception as exc:
        print(f"[mehfil-backfill] failed: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
