import argparse
import logging
import sqlite3
import sys
from core import config
from core.database import DatabaseManager, create_connection, execute, list_tables, query
from services.replicator import InsertVerb, replication_service

def _open_pair(args):
    source = create_connection(args.source_db, read_only=True)
    if args.dest_db and args.dest_db != args.source_db:
        try:
            return source, create_connection(args.dest_db)
        except sqlite3.Error:
            source.close()
            raise
    # Same file: reuse one writable connection so the copy sees its own writes.
    source.close()
    source = create_connection(args.source_db)
    return source, source

def _run_copy(args, insert_verb, create_schema):
    try:
        source, destination = _open_pair(args)
    except sqlite3.Error as e:
        print(f"[ERR] Cannot open database: {e}")
        return 1

    try:
        result = replication_service.copy_table(
            source,
            args.source_table,
            destination=destination,
            destination_table=args.dest_table,
            insert_verb=insert_verb,
            clear_destination_first=args.clear,
            create_schema_first=create_schema,
            use_transaction=not args.no_transaction,
        )
    except sqlite3.Error as e:
        print(f"[ERR] Copy failed: {e}")
        return 1
    finally:
        source.close()
        if destination is not source:
            destination.close()

    if not result:
        print("[ERR] Source and destination are the same table.")
        return 1
    print(f"[OK] Copied {result.rows_copied} rows into '{args.dest_table or args.source_table}'.")
    if result.schema_created:
        print("  Schema created on destination.")
    if result.mismatches:
        print(f"  [WARN] {len(result.mismatches)} rows did not affect exactly one row: {result.mismatches}")
    return 0

def handle_copy(args):
    verb = InsertVerb.INSERT_OR_REPLACE if args.replace else InsertVerb.INSERT
    return _run_copy(args, verb, args.create_schema)

def handle_insert(args):
    return _run_copy(args, InsertVerb.INSERT, False)

def handle_replace(args):
    return _run_copy(args, InsertVerb.INSERT_OR_REPLACE, False)

def handle_query(args):
    try:
        with DatabaseManager(args.db).get_connection(read_only=True) as conn:
            rows = query(conn, args.sql, limit=args.limit)
    except sqlite3.Error as e:
        print(f"[ERR] {e}")
        return 1

    if not rows:
        print("No rows.")
        return 0
    columns = list(rows[0].keys())
    print(" | ".join(columns))
    print("-" * 40)
    for row in rows:
        print(" | ".join("NULL" if row[c] is None else str(row[c]) for c in columns))
    print(f"({len(rows)} rows)")
    return 0

def handle_execute(args):
    try:
        with DatabaseManager(args.db).get_connection() as conn:
            affected = execute(conn, args.sql)
    except sqlite3.Error as e:
        print(f"[ERR] {e}")
        return 1
    print(f"[OK] {affected} rows affected.")
    return 0

def handle_tables(args):
    try:
        with DatabaseManager(args.db).get_connection(read_only=True) as conn:
            names = list_tables(conn)
    except sqlite3.Error as e:
        print(f"[ERR] {e}")
        return 1
    for name in names:
        print(name)
    return 0

def _add_copy_args(p):
    p.add_argument("source_db")
    p.add_argument("source_table")
    p.add_argument("--dest-db", help="Destination database (defaults to the source)")
    p.add_argument("--dest-table", help="Destination table (defaults to the source table)")
    p.add_argument("--clear", action="store_true", help="Delete destination rows (or drop it with --create-schema) first")
    p.add_argument("--no-transaction", action="store_true", help="Do not wrap the copy in a transaction")

def build_parser():
    parser = argparse.ArgumentParser(description="SQLiteExt CLI")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Copy
    p_copy = subparsers.add_parser("copy", help="Copy a table's rows (and optionally schema)")
    _add_copy_args(p_copy)
    p_copy.add_argument("--replace", action="store_true", help="Use INSERT OR REPLACE")
    p_copy.add_argument("--create-schema", action="store_true", help="Create the destination table first")

    # Insert / Replace shortcuts
    p_insert = subparsers.add_parser("insert", help="INSERT rows of one table into another")
    _add_copy_args(p_insert)
    p_replace = subparsers.add_parser("replace", help="INSERT OR REPLACE rows of one table into another")
    _add_copy_args(p_replace)

    # Query
    p_query = subparsers.add_parser("query", help="Run a SELECT and print the rows")
    p_query.add_argument("--db", help="Database file (defaults to SQLITEEXT_DB_FILE)")
    p_query.add_argument("sql")
    p_query.add_argument("--limit", type=int, default=config.MAX_QUERY_ROWS)

    # Execute
    p_exec = subparsers.add_parser("execute", help="Run a non-query statement")
    p_exec.add_argument("--db", help="Database file (defaults to SQLITEEXT_DB_FILE)")
    p_exec.add_argument("sql")

    # Tables
    p_tables = subparsers.add_parser("tables", help="List tables of a database")
    p_tables.add_argument("--db", help="Database file (defaults to SQLITEEXT_DB_FILE)")

    return parser

HANDLERS = {
    "copy": handle_copy,
    "insert": handle_insert,
    "replace": handle_replace,
    "query": handle_query,
    "execute": handle_execute,
    "tables": handle_tables,
}

def main(argv=None):
    logging.basicConfig(level=config.LOG_LEVEL)
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = HANDLERS.get(args.command)
    if handler is None:
        parser.print_help()
        return 2
    return handler(args)

if __name__ == "__main__":
    sys.exit(main())
