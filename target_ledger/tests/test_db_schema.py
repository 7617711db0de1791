"""Schema integrity tests for the ledger migration."""
from __future__ import annotations

from pathlib import Path

import pytest

sqlalchemy = pytest.importorskip("sqlalchemy")
alembic = pytest.importorskip("alembic")
alembic_command = pytest.importorskip("alembic.command")
alembic_config_module = pytest.importorskip("alembic.config")

sa = sqlalchemy
command = alembic_command
Config = alembic_config_module.Config


@pytest.fixture(scope="session")
def alembic_config(tmp_path_factory: pytest.TempPathFactory) -> Config:
    """Provide Alembic config bound to a temporary SQLite database."""

    project_root = Path(__file__).resolve().parents[2]
    db_path = tmp_path_factory.mktemp("db") / "test.db"

    config = Config(str(project_root / "alembic.ini"))
    config.set_main_option("sqlalchemy.url", f"sqlite:///{db_path}")
    config.set_main_option("script_location", str(project_root / "migrations"))
    return config


@pytest.fixture(scope="session")
def migrated_engine(alembic_config: Config):
    """Run migrations against SQLite and yield an engine."""

    command.upgrade(alembic_config, "head")
    engine = sa.create_engine(alembic_config.get_main_option("sqlalchemy.url"))
    try:
        yield engine
    finally:
        engine.dispose()


def test_tables_exist(migrated_engine: sa.Engine) -> None:
    inspector = sa.inspect(migrated_engine)
    tables = set(inspector.get_table_names())
    assert {"targets", "progress_entries", "fund_transfers", "audit_logs"}.issubset(tables)


def test_foreign_keys_enforced(migrated_engine: sa.Engine) -> None:
    inspector = sa.inspect(migrated_engine)
    fk_expectations = {
        "targets": {"extended_from_id": "targets"},
        "progress_entries": {"target_id": "targets"},
    }

    for table, expected in fk_expectations.items():
        foreign_keys = inspector.get_foreign_keys(table)
        fk_map = {tuple(fk["constrained_columns"]): fk["referred_table"] for fk in foreign_keys}
        for column, target in expected.items():
            assert (column,) in fk_map
            assert fk_map[(column,)] == target


def test_one_active_target_index(migrated_engine: sa.Engine) -> None:
    inspector = sa.inspect(migrated_engine)
    indexes = {index["name"]: index for index in inspector.get_indexes("targets")}

    active_index = indexes["uq_targets_active_owner_period"]
    assert active_index["unique"]
    assert active_index["column_names"] == ["owner_id", "period_start"]


def test_active_index_allows_history_but_not_two_active_rows(migrated_engine: sa.Engine) -> None:
    insert = sa.text(
        "INSERT INTO targets (owner_id, target_amount, status, period_start) "
        "VALUES (:owner, 10, :status, '2024-01-01')"
    )
    with migrated_engine.begin() as connection:
        connection.execute(insert, {"owner": 900, "status": "EXTENDED"})
        connection.execute(insert, {"owner": 900, "status": "ACTIVE"})

    with pytest.raises(sa.exc.IntegrityError):
        with migrated_engine.begin() as connection:
            connection.execute(insert, {"owner": 900, "status": "ACTIVE"})


def test_transfer_constraints(migrated_engine: sa.Engine) -> None:
    inspector = sa.inspect(migrated_engine)
    checks = {constraint["name"] for constraint in inspector.get_check_constraints("fund_transfers")}
    assert {"ck_fund_transfers_distinct_owners", "ck_fund_transfers_positive_amount"}.issubset(checks)

    with pytest.raises(sa.exc.IntegrityError):
        with migrated_engine.begin() as connection:
            connection.execute(
                sa.text("INSERT INTO fund_transfers (from_owner_id, to_owner_id, amount) VALUES (5, 5, 10)")
            )


@pytest.mark.parametrize(
    "table_name, index_name",
    [
        ("targets", "ix_targets_owner_id"),
        ("targets", "ix_targets_period_start_status"),
        ("progress_entries", "ix_progress_entries_target_id"),
        ("fund_transfers", "ix_fund_transfers_from_owner_id"),
        ("audit_logs", "ix_audit_logs_resource"),
    ],
)
def test_lookup_indexes(table_name: str, index_name: str, migrated_engine: sa.Engine) -> None:
    inspector = sa.inspect(migrated_engine)
    assert index_name in {index["name"] for index in inspector.get_indexes(table_name)}
