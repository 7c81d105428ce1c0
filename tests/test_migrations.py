"""Alembic revisions build the same history table the models declare."""
import os

import sqlalchemy as sa
from alembic import command
from alembic.config import Config

from mediaforge.models.history import HistoryRecord

from conftest import BACKEND


def _alembic_config(url):
    cfg = Config()
    cfg.set_main_option("script_location", os.path.join(BACKEND, "alembic"))
    cfg.attributes["database_url"] = url
    return cfg


def test_upgrade_head_matches_models(tmp_path):
    db_path = tmp_path / "migrated.db"
    command.upgrade(_alembic_config(f"sqlite+aiosqlite:///{db_path}"), "head")

    engine = sa.create_engine(f"sqlite:///{db_path}")
    inspector = sa.inspect(engine)
    columns = {c["name"] for c in inspector.get_columns("history")}
    assert columns == set(HistoryRecord.__table__.columns.keys())

    indexes = {ix["name"] for ix in inspector.get_indexes("history")}
    assert indexes == {ix.name for ix in HistoryRecord.__table__.indexes}
    engine.dispose()


def test_downgrade_drops_the_table(tmp_path):
    db_path = tmp_path / "migrated.db"
    cfg = _alembic_config(f"sqlite+aiosqlite:///{db_path}")
    command.upgrade(cfg, "head")
    command.downgrade(cfg, "base")

    engine = sa.create_engine(f"sqlite:///{db_path}")
    assert sa.inspect(engine).get_table_names() == ["alembic_version"]
    engine.dispose()
