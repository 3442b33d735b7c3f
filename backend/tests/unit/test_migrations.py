"""
Unit tests for the Alembic revisions of the tables this API owns.
"""
import importlib.util
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateTable

from kmerbeauty.models import ClientPreference


VERSIONS = Path(__file__).resolve().parents[2] / "migrations" / "versions"


def load_revision(filename):
    spec = importlib.util.spec_from_file_location(filename[:-3], VERSIONS / filename)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    module.op = MagicMock()
    return module


@pytest.fixture
def revision():
    return load_revision("4e1b9c7a2d35_create_client_preferences.py")


@pytest.mark.unit
def test_upgrade_creates_client_preferences(revision):
    revision.upgrade()

    name, *elements = revision.op.create_table.call_args.args
    ddl = str(CreateTable(sa.Table(name, sa.MetaData(), *elements)).compile(dialect=postgresql.dialect()))

    assert name == "client_preferences"
    assert "user_id UUID NOT NULL" in ddl
    assert "key TEXT NOT NULL" in ddl
    assert "value JSONB" in ddl
    assert "updated_at TIMESTAMP WITH TIME ZONE DEFAULT now() NOT NULL" in ddl
    assert "PRIMARY KEY (user_id, key)" in ddl


@pytest.mark.unit
def test_upgrade_matches_the_model_columns(revision):
    revision.upgrade()

    _, *elements = revision.op.create_table.call_args.args
    columns = {element.name for element in elements if isinstance(element, sa.Column)}
    assert columns == set(ClientPreference.__table__.columns.keys())


@pytest.mark.unit
def test_downgrade_drops_the_table(revision):
    revision.downgrade()
    revision.op.drop_table.assert_called_once_with("client_preferences")


@pytest.mark.unit
def test_revision_is_the_root_of_the_history(revision):
    assert revision.revision == "4e1b9c7a2d35"
    assert revision.down_revision is None
