# tests/test_scripts.py
"""Tests for the table bootstrap, backfill and migration helpers."""

from pathlib import Path

import pytest
from sqlalchemy import inspect, update
from sqlalchemy.ext.asyncio import create_async_engine

from mehfil.models import Category, Thought, ThoughtStatus, User
from mehfil.scripts.backfill_moderation import (
    BACKFILL_REASON,
    BackfillSummary,
    apply_backfill,
    collect_summary,
)
from mehfil.scripts.ensure_db import ensure_tables
from mehfil.scripts.migrate import build_config


async def _seed_legacy_rows(session_factory, make_thought, make_user) -> dict[str, str]:
    await make_user("old-timer", spam_strike_count=-2)
    hall = await make_thought("old-timer")
    memes = await make_thought("old-timer")
    drifted = await make_thought("old-timer", category=Category.REFLECTIVE)

    async with session_factory() as session:
        await session.execute(
            update(Thought).where(Thought.id == hall.id).values(category="Thoughts", status="LIVE")
        )
        await session.execute(
            update(Thought).where(Thought.id == memes.id).values(category="memes")
        )
        await session.execute(
            update(Thought).where(Thought.id == drifted.id).values(relatable_count=4)
        )
        await session.commit()
    return {"hall": hall.id, "memes": memes.id, "drifted": drifted.id}


@pytest.mark.asyncio
async def test_summary_counts_legacy_rows(session_factory, make_thought, make_user) -> None:
    await _seed_legacy_rows(session_factory, make_thought, make_user)

    async with session_factory() as session:
        summary = await collect_summary(session)

    assert summary == BackfillSummary(
        thoughts_legacy_category=2,
        thoughts_unknown_status=1,
        thoughts_missing_reason=3,
        thoughts_count_drift=1,
        users_negative_strikes=1,
    )


@pytest.mark.asyncio
async def test_backfill_rewrites_legacy_rows(session_factory, make_thought, make_user) -> None:
    """Test that every legacy field is normalised and a second summary is clean."""
    ids = await _seed_legacy_rows(session_factory, make_thought, make_user)

    async with session_factory() as session:
        changed = await apply_backfill(session)

    assert changed == {
        "thoughts category set": 2,
        "thoughts status set": 1,
        "thoughts moderation_reason set": 3,
        "thoughts relatable_count reconciled": 1,
        "users spam_strike_count reset": 1,
    }

    async with session_factory() as session:
        assert await collect_summary(session) == BackfillSummary(0, 0, 0, 0, 0)

        hall = await session.get(Thought, ids["hall"])
        assert hall.category == Category.REFLECTIVE
        assert hall.status == ThoughtStatus.APPROVED
        assert hall.moderation_reason == BACKFILL_REASON

        memes = await session.get(Thought, ids["memes"])
        assert memes.category == Category.ACADEMIC

        drifted = await session.get(Thought, ids["drifted"])
        assert drifted.relatable_count == 0

        user = await session.get(User, "old-timer")
        assert user.spam_strike_count == 0


def test_migration_config_points_at_project_migrations() -> None:
    cfg = build_config("sqlite:///./migrate-test.db")

    script_location = Path(cfg.get_main_option("script_location"))
    assert script_location.name == "migrations"
    assert (script_location / "env.py").exists()
    assert cfg.get_main_option("sqlalchemy.url") == "sqlite:///./migrate-test.db"


@pytest.mark.asyncio
async def test_ensure_tables_creates_and_resets(tmp_path, capsys) -> None:
    db_url = f"sqlite+aiosqlite:///{tmp_path / 'mehfil.db'}"

    await ensure_tables(db_url)
    await ensure_tables(db_url, drop=True)

    engine = create_async_engine(db_url)
    try:
        async with engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
    finally:
        await engine.dispose()

    assert {"mehfil_thought", "mehfil_user", "mehfil_reaction"} <= set(tables)
    output = capsys.readouterr().out
    assert "dropped all Mehfil tables" in output
