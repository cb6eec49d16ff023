import sqlite3
from pathlib import Path
from unittest.mock import patch
from cli import main

def test_copy_creates_schema_in_new_database(data_root, capsys):
    src, dest = str(data_root / "source.db"), str(data_root / "backup.db")
    code = main(["copy", src, "T", "--dest-db", dest, "--create-schema"])

    assert code == 0
    assert "[OK] Copied 2 rows" in capsys.readouterr().out
    conn = sqlite3.connect(dest)
    assert conn.execute("SELECT id, name FROM T ORDER BY id").fetchall() == [(1, 'a'), (2, 'b')]
    conn.close()

def test_copy_within_same_database(data_root, capsys):
    src = str(data_root / "source.db")
    assert main(["copy", src, "T", "--dest-table", "T_copy", "--create-schema"]) == 0

    conn = sqlite3.connect(src)
    assert conn.execute("SELECT COUNT(*) FROM T_copy").fetchone()[0] == 2
    conn.close()

def test_self_copy_reports_error(data_root, capsys):
    src = str(data_root / "source.db")
    assert main(["insert", src, "T"]) == 1
    assert "[ERR]" in capsys.readouterr().out

def test_insert_conflict_reports_error(data_root, capsys):
    src, dest = str(data_root / "source.db"), str(data_root / "dest.db")
    main(["copy", src, "T", "--dest-db", dest, "--create-schema"])
    capsys.readouterr()

    assert main(["insert", src, "T", "--dest-db", dest]) == 1
    assert "Copy failed" in capsys.readouterr().out
    assert main(["replace", src, "T", "--dest-db", dest]) == 0

def test_execute_query_and_tables(data_root, capsys):
    db = str(data_root / "source.db")
    assert main(["execute", "--db", db, "INSERT INTO T (id, name) VALUES (3, 'c')"]) == 0
    assert "[OK] 1 rows affected." in capsys.readouterr().out

    assert main(["query", "--db", db, "SELECT name FROM T ORDER BY id"]) == 0
    out = capsys.readouterr().out
    assert "(3 rows)" in out
    assert "c" in out

    assert main(["tables", "--db", db]) == 0
    assert capsys.readouterr().out.split() == ["T"]

def test_no_command_prints_help(capsys):
    assert main([]) == 2

def test_default_database_from_config(data_root, capsys):
    with patch("core.config.DB_FILE", Path(data_root / "source.db")):
        assert main(["tables"]) == 0
    assert capsys.readouterr().out.split() == ["T"]

def test_query_limit_zero_prints_no_rows(data_root, capsys):
    db = str(data_root / "source.db")
    assert main(["query", "--db", db, "SELECT * FROM T", "--limit", "0"]) == 0
    assert "No rows." in capsys.readouterr().out

def test_missing_source_database_reports_error(data_root, capsys):
    missing = str(data_root / "missing.db")
    assert main(["copy", missing, "T", "--dest-db", str(data_root / "out.db")]) == 1
    assert "[ERR] Cannot open database" in capsys.readouterr().out

def test_unopenable_destination_reports_error(data_root, capsys):
    src = str(data_root / "source.db")
    dest = str(data_root / "no_such_dir" / "out.db")
    assert main(["copy", src, "T", "--dest-db", dest, "--create-schema"]) == 1
    assert "[ERR] Cannot open database" in capsys.readouterr().out

def test_tables_on_missing_database_reports_error(data_root, capsys):
    assert main(["tables", "--db", str(data_root / "missing.db")]) == 1
    assert "[ERR]" in capsys.readouterr().out
