import pytest
import sqlite3
from pathlib import Path
from unittest.mock import patch

def make_people_db(conn, rows=((1, 'a'), (2, 'b'))):
    conn.execute("CREATE TABLE T (id INTEGER PRIMARY KEY, name TEXT)")
    conn.executemany("INSERT INTO T (id, name) VALUES (?, ?)", rows)
    conn.commit()
    return conn

@pytest.fixture
def source_conn():
    """In-memory source database holding T(id, name) = (1,'a'), (2,'b')."""
    conn = make_people_db(sqlite3.connect(":memory:"))
    yield conn
    conn.close()

@pytest.fixture
def dest_conn():
    """Empty in-memory destination database."""
    conn = sqlite3.connect(":memory:")
    yield conn
    conn.close()

@pytest.fixture
def data_root(tmp_path):
    """Points the data root at a temp dir with a populated source.db."""
    conn = make_people_db(sqlite3.connect(tmp_path / "source.db"))
    conn.close()
    with patch("core.config.DATA_ROOT", Path(tmp_path)):
        yield Path(tmp_path)

@pytest.fixture
def client(data_root):
    """Flask test client."""
    from app import app as flask_app
    flask_app.config.update({"TESTING": True})

    with flask_app.test_client() as client:
        yield client
