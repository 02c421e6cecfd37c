"""Tests that the baseline migration matches the ORM schema."""

import importlib

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

from aggregator.orm_models import Base


@pytest.fixture
def baseline():
    return importlib.import_module("aggregator.migrations.versions.001_initial_schema")


def run_migration(engine, fn):
    with engine.begin() as conn:
        context = MigrationContext.configure(conn)
        with Operations.context(context):
            fn()


def test_upgrade_matches_orm(baseline):
    engine = create_engine("sqlite:///:memory:")
    run_migration(engine, baseline.upgrade)

    inspector = inspect(engine)
    assert set(inspector.get_table_names()) == set(Base.metadata.tables)
    for name, table in Base.metadata.tables.items():
        migrated_columns = {column["name"] for column in inspector.get_columns(name)}
        assert migrated_columns == set(table.columns.keys()), name
        migrated_indexes = {index["name"] for index in inspector.get_indexes(name)}
        assert {index.name for index in table.indexes} <= migrated_indexes, name


def test_downgrade_drops_everything(baseline):
    engine = create_engine("sqlite:///:memory:")
    run_migration(engine, baseline.upgrade)
    run_migration(engine, baseline.downgrade)

    assert inspect(engine).get_table_names() == []
