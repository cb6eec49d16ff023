from flask import Blueprint, request, jsonify, current_app
import sqlite3

from core import config
from core.database import DatabaseManager, create_connection, execute, list_tables, query
from services.replicator import InsertVerb, replication_service

api_v1 = Blueprint('api_v1', __name__)


class DatabaseNotFound(Exception):
    pass


def resolve_db(name, must_exist=True):
    """Maps a database name onto a file under DATA_ROOT."""
    if not name:
        raise ValueError("Missing database name")
    root = config.DATA_ROOT.resolve()
    path = (root / name).resolve()
    if root not in path.parents:
        raise ValueError(f"Database '{name}' is outside the data root")
    if path.suffix.lower() not in config.DB_SUFFIXES:
        raise ValueError(f"Unsupported database file type: '{path.suffix}'")
    if must_exist and not path.exists():
        raise DatabaseNotFound(f"Database '{name}' not found")
    return path


def _error(e):
    status = 404 if isinstance(e, DatabaseNotFound) else 400
    return jsonify({'error': str(e)}), status


# --- 1. Tables ---

@api_v1.route('/tables', methods=['GET'])
def list_tables_endpoint():
    try:
        path = resolve_db(request.args.get('db'))
        with DatabaseManager(path).get_connection(read_only=True) as conn:
            tables = list_tables(conn)
    except (ValueError, DatabaseNotFound) as e:
        return _error(e)
    except sqlite3.Error as e:
        return jsonify({'error': str(e)}), 400
    return jsonify({'db': request.args.get('db'), 'tables': tables})


@api_v1.route('/tables/copy', methods=['POST'])
def copy_table_endpoint():
    """Copies a table between two databases (or within one)."""
    data = request.get_json(silent=True) or {}
    source_table = data.get('source_table')
    if not source_table:
        return jsonify({'error': 'Missing source_table'}), 400

    try:
        source_path = resolve_db(data.get('source_db'))
        dest_name = data.get('destination_db')
        dest_path = resolve_db(dest_name, must_exist=False) if dest_name else source_path
        verb = InsertVerb.parse(data.get('mode', 'insert'))
    except (ValueError, DatabaseNotFound) as e:
        return _error(e)

    use_transaction = bool(data.get('transaction', True))
    source = destination = None
    try:
        source = create_connection(source_path)
        destination = source if dest_path == source_path else create_connection(dest_path)
        result = replication_service.copy_table(
            source,
            source_table,
            destination=destination,
            destination_table=data.get('destination_table'),
            insert_verb=verb,
            clear_destination_first=bool(data.get('clear_first', False)),
            create_schema_first=bool(data.get('create_schema', False)),
            use_transaction=use_transaction,
        )
        if not use_transaction:
            destination.commit()
    except sqlite3.Error as e:
        current_app.logger.error(f"Copy of '{source_table}' failed: {e}")
        # Without a transaction, rows inserted before the failure are kept.
        if destination is not None and not use_transaction:
            destination.commit()
        return jsonify({'success': False, 'error': str(e)}), 400
    finally:
        if source is not None:
            source.close()
        if destination is not None and destination is not source:
            destination.close()

    if not result:
        return jsonify({**result.to_dict(), 'error': 'Source and destination are the same table'}), 409
    return jsonify(result.to_dict())


# --- 2. Raw SQL ---

@api_v1.route('/query', methods=['POST'])
def query_endpoint():
    data = request.get_json(silent=True) or {}
    sql = data.get('sql')
    if not sql:
        return jsonify({'error': 'Missing sql'}), 400
    try:
        limit = int(data.get('limit', config.MAX_QUERY_ROWS))
    except (TypeError, ValueError):
        return jsonify({'error': f"Invalid limit: {data.get('limit')!r}"}), 400
    if limit < 0:
        return jsonify({'error': 'limit must not be negative'}), 400
    limit = min(limit, config.MAX_QUERY_ROWS)

    try:
        path = resolve_db(data.get('db'))
        with DatabaseManager(path).get_connection(read_only=True) as conn:
            rows = query(conn, sql, limit=limit)
    except (ValueError, DatabaseNotFound) as e:
        return _error(e)
    except sqlite3.Error as e:
        return jsonify({'error': str(e)}), 400

    columns = list(rows[0].keys()) if rows else []
    return jsonify({'columns': columns, 'rows': rows, 'row_count': len(rows)})


@api_v1.route('/execute', methods=['POST'])
def execute_endpoint():
    data = request.get_json(silent=True) or {}
    sql = data.get('sql')
    if not sql:
        return jsonify({'error': 'Missing sql'}), 400
    try:
        path = resolve_db(data.get('db'), must_exist=False)
        with DatabaseManager(path).get_connection() as conn:
            affected = execute(conn, sql)
    except ValueError as e:
        return _error(e)
    except sqlite3.Error as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    return jsonify({'success': True, 'rows_affected': affected})
