"""Pytest configuration for tests.

No sys.path hacks - tests should import from installed protosql package.
"""

from pathlib import Path

import pytest
from sqlalchemy import create_engine, text


def create_sqlite_db(path: Path, *ddl: str):
    """Create a SQLite database file and run the given DDL statements."""
    engine = create_engine(f"sqlite:///{path}")
    with engine.begin() as conn:
        for statement in ddl:
            conn.execute(text(statement))
    return engine


@pytest.fixture
def sqlite_db(tmp_path):
    """Factory fixture: sqlite_db(*ddl) -> (engine, uri). Engines are disposed on teardown."""
    engines = []

    def _make(*ddl: str):
        path = tmp_path / "catalog.sqlite"
        engine = create_sqlite_db(path, *ddl)
        engines.append(engine)
        return engine, f"sqlite:///{path}"

    yield _make
    for engine in engines:
        engine.dispose()


@pytest.fixture
def write_proto(tmp_path):
    """Factory fixture: write_proto(name, text) -> Path under tmp_path/protos."""
    proto_dir = tmp_path / "protos"
    proto_dir.mkdir(exist_ok=True)

    def _write(name: str, source: str) -> Path:
        path = proto_dir / name
        path.write_text(source, encoding="utf-8")
        return path

    return _write
