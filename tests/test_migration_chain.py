"""Sanity checks for the Alembic migrations in ``backend/migrations/versions``."""

from __future__ import annotations

from pathlib import Path
import re

from backend.database import Base
import backend.models  # noqa: F401


VERSIONS_DIR = Path(__file__).resolve().parents[1] / "backend" / "migrations" / "versions"


def _parse_revisions() -> dict[str, list[str]]:
    revision_pattern = re.compile(r"^revision:\s*.*?['\"]([^'\"]+)['\"]", re.MULTILINE)
    down_pattern = re.compile(r"^down_revision:\s*.*?=\s*(.+)$", re.MULTILINE)

    revisions: dict[str, list[str]] = {}
    for path in VERSIONS_DIR.glob("*.py"):
        text = path.read_text()
        revision_match = revision_pattern.search(text)
        assert revision_match, f"Missing revision identifier in {path.name}"

        down_match = down_pattern.search(text)
        parents = re.findall(r"['\"]([^'\"]+)['\"]", down_match.group(1)) if down_match else []
        revisions[revision_match.group(1)] = parents

    return revisions


def test_migrations_have_single_head() -> None:
    revisions = _parse_revisions()
    referenced = {parent for parents in revisions.values() for parent in parents}

    missing = referenced - set(revisions)
    assert not missing, f"Missing migration files referenced by down_revision: {missing}"

    heads = sorted(set(revisions) - referenced)
    assert len(heads) == 1, f"Multiple migration heads detected: {heads}"

    seen: set[str] = set()
    pending = [heads[0]]
    while pending:
        current = pending.pop()
        if current not in seen:
            seen.add(current)
            pending.extend(revisions[current])

    unreachable = set(revisions) - seen
    assert not unreachable, f"Unreachable migrations: {sorted(unreachable)}"


def test_every_model_table_is_migrated() -> None:
    migrated = "\n".join(path.read_text() for path in VERSIONS_DIR.glob("*.py"))

    for table_name in Base.metadata.tables:
        assert re.search(rf"create_table\(\s*['\"]{table_name}['\"]", migrated), f"No migration creates {table_name}"
