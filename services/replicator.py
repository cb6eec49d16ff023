import logging
import re
import sqlite3
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional

from core.database import database_file, drop_table, delete_from, get_table_schema, quote_identifier

logger = logging.getLogger(__name__)

_IDENT = r'(?:"(?:[^"]|"")*"|`(?:[^`]|``)*`|\[[^\]]*\]|\'(?:[^\']|\'\')*\'|[^\W\d][\w$]*)'
_CREATE_TABLE_RE = re.compile(
    r'^\s*CREATE\s+TABLE\s+(?P<if_not_exists>IF\s+NOT\s+EXISTS\s+)?'
    r'(?P<name>(?:' + _IDENT + r'\s*\.\s*)?' + _IDENT + r')',
    re.IGNORECASE,
)


class InsertVerb(str, Enum):
    INSERT = "INSERT"
    INSERT_OR_REPLACE = "INSERT OR REPLACE"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        normalized = " ".join(str(value).upper().replace("_", " ").split())
        for verb in cls:
            if verb.value == normalized:
                return verb
        if normalized == "REPLACE":
            return cls.INSERT_OR_REPLACE
        raise ValueError(f"Unsupported insert verb: {value!r}")


@dataclass
class CopySpec:
    """Everything one copy needs. ``destination`` and ``destination_table``
    default to the source side; call ``resolved()`` to fill them in."""
    source: sqlite3.Connection
    source_table: str
    destination: Optional[sqlite3.Connection] = None
    destination_table: Optional[str] = None
    insert_verb: InsertVerb = InsertVerb.INSERT
    clear_destination_first: bool = False
    create_schema_first: bool = False
    use_transaction: bool = True
    # Bind every non-NULL, non-BLOB value as TEXT, like a textual VALUES list would.
    values_as_text: bool = False

    def resolved(self) -> "CopySpec":
        if not self.source_table:
            raise ValueError("source_table is required")
        return replace(
            self,
            destination=self.destination if self.destination is not None else self.source,
            destination_table=self.destination_table or self.source_table,
            insert_verb=InsertVerb.parse(self.insert_verb),
        )

    def is_self_copy(self) -> bool:
        if self.source_table.casefold() != self.destination_table.casefold():
            return False
        if self.source is self.destination:
            return True
        src_file = database_file(self.source)
        return bool(src_file) and src_file == database_file(self.destination)


@dataclass
class CopyResult:
    success: bool
    rows_copied: int = 0
    mismatches: List[int] = field(default_factory=list)
    schema_created: bool = False

    def __bool__(self):
        return self.success

    def to_dict(self):
        return {
            "success": self.success,
            "rows_copied": self.rows_copied,
            "mismatches": list(self.mismatches),
            "schema_created": self.schema_created,
        }


def rename_create_statement(create_sql, new_table):
    """Points a catalog CREATE TABLE statement at ``new_table``."""
    match = _CREATE_TABLE_RE.match(create_sql)
    if not match:
        raise ValueError(f"Not a CREATE TABLE statement: {create_sql[:60]!r}")
    prefix = "CREATE TABLE " + (match.group("if_not_exists") or "")
    return prefix + quote_identifier(new_table) + create_sql[match.end():]


class ReplicationService:
    """Copies schema and rows of one SQLite table into another.

    Source and destination may live on different connections or be two tables
    of the same connection. The source is only read.
    """

    def replicate(self, spec: CopySpec) -> CopyResult:
        spec = spec.resolved()
        if spec.is_self_copy():
            logger.warning(f"Refusing to copy table '{spec.source_table}' onto itself")
            return CopyResult(success=False)

        dest = spec.destination
        began = False
        if spec.use_transaction:
            if dest.in_transaction:
                logger.info("Destination already inside a transaction, joining it")
            else:
                dest.execute("BEGIN")
                began = True

        result = CopyResult(success=True)
        try:
            if spec.create_schema_first:
                result.schema_created = self._copy_schema(spec)
            elif spec.clear_destination_first:
                delete_from(dest, spec.destination_table)
            self._copy_rows(spec, result)
            if began:
                dest.execute("COMMIT")
        except Exception:
            if began and dest.in_transaction:
                logger.error(f"Copy into '{spec.destination_table}' failed, rolling back")
                dest.execute("ROLLBACK")
            raise

        logger.info(
            f"Copied {result.rows_copied} rows from '{spec.source_table}' to "
            f"'{spec.destination_table}' ({len(result.mismatches)} mismatches)"
        )
        return result

    def _copy_schema(self, spec):
        if spec.clear_destination_first:
            drop_table(spec.destination, spec.destination_table)

        create_sql = get_table_schema(spec.source, spec.source_table)
        if create_sql is None:
            logger.warning(f"No schema found for table '{spec.source_table}', destination not created")
            return False

        spec.destination.execute(rename_create_statement(create_sql, spec.destination_table))
        return True

    def _copy_rows(self, spec, result):
        reader = spec.source.execute(f"SELECT * FROM {quote_identifier(spec.source_table)}")
        try:
            insert_sql = None
            for row in reader:
                if insert_sql is None:
                    columns = ", ".join(quote_identifier(d[0]) for d in reader.description)
                    placeholders = ", ".join("?" * len(reader.description))
                    insert_sql = (
                        f"{spec.insert_verb.value} INTO {quote_identifier(spec.destination_table)} "
                        f"({columns}) VALUES ({placeholders})"
                    )
                values = tuple(row)
                if spec.values_as_text:
                    values = tuple(
                        v if v is None or isinstance(v, bytes) else str(v) for v in values
                    )

                affected = spec.destination.execute(insert_sql, values).rowcount
                if affected != 1:
                    logger.warning(
                        f"Insert into '{spec.destination_table}' from '{spec.source_table}' "
                        f"affected {affected} rows for source row {result.rows_copied}"
                    )
                    result.mismatches.append(result.rows_copied)
                result.rows_copied += 1
        finally:
            reader.close()

    def copy_table(self, source, source_table, destination=None, destination_table=None,
                   insert_verb=InsertVerb.INSERT, clear_destination_first=False,
                   create_schema_first=False, use_transaction=True, values_as_text=False):
        return self.replicate(CopySpec(
            source=source,
            source_table=source_table,
            destination=destination,
            destination_table=destination_table,
            insert_verb=insert_verb,
            clear_destination_first=clear_destination_first,
            create_schema_first=create_schema_first,
            use_transaction=use_transaction,
            values_as_text=values_as_text,
        ))

    def create_and_copy_table(self, source, destination, table, drop_first=False, use_transaction=True):
        """Creates ``table`` on ``destination`` from the source schema, then copies its rows."""
        return self.copy_table(source, table, destination=destination,
                               clear_destination_first=drop_first, create_schema_first=True,
                               use_transaction=use_transaction)

    def insert_table(self, source, table, destination=None, destination_table=None,
                     clear_destination_first=False, use_transaction=True):
        return self.copy_table(source, table, destination=destination,
                               destination_table=destination_table,
                               clear_destination_first=clear_destination_first,
                               use_transaction=use_transaction)

    def insert_or_replace_table(self, source, table, destination=None, destination_table=None,
                                clear_destination_first=False, use_transaction=True):
        return self.copy_table(source, table, destination=destination,
                               destination_table=destination_table,
                               insert_verb=InsertVerb.INSERT_OR_REPLACE,
                               clear_destination_first=clear_destination_first,
                               use_transaction=use_transaction)

# Global instance
replication_service = ReplicationService()
