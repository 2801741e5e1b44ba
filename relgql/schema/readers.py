"""Engine-specific catalog readers and the registry that selects them."""

import logging
import re
from typing import Any, Dict, List, Optional, Type

from ..exceptions import ValidationError
from .clients import DataAPIClient
from .context import ConnectionInfo
from .introspection import DatabaseReader
from .model import ColumnDescription, ForeignKeyReferences, RelationshipEdge, TableName

logger = logging.getLogger(__name__)


class PostgreSQLDatabaseReader(DatabaseReader):
    """Reads the PostgreSQL catalog through information_schema and pg_catalog."""

    engine = "postgresql"
    ignored_schemas = frozenset({"pg_catalog", "information_schema", "pg_toast"})
    ignored_databases = frozenset({"rdsadmin", "postgres"})

    async def list_tables(self) -> List[TableName]:
        params: Dict[str, Any] = {}
        sql = f"""
            SELECT schemaname, tablename, CURRENT_SCHEMA()
            FROM pg_catalog.pg_tables
            WHERE {self._schemas_filter('schemaname', params)}
            ORDER BY schemaname, tablename
        """
        rows = await self._execute(sql, params, operation="list_tables")
        return [
            self._relative_name(schema, name, current)
            for schema, name, current in rows
            if schema not in self.ignored_schemas
        ]

    async def describe_table(self, table: TableName) -> List[ColumnDescription]:
        params: Dict[str, Any] = {"table": table.name}
        sql = f"""
            SELECT
                c.column_name,
                c.data_type,
                c.is_nullable,
                c.column_default,
                e.data_type AS element_type,
                pk.column_name IS NOT NULL AS is_primary_key
            FROM information_schema.columns c
            LEFT JOIN information_schema.element_types e
                ON (c.table_catalog, c.table_schema, c.table_name, 'TABLE', c.dtd_identifier)
                 = (e.object_catalog, e.object_schema, e.object_name, e.object_type,
                    e.collection_type_identifier)
            LEFT JOIN (
                SELECT kcu.table_schema, kcu.table_name, kcu.column_name
                FROM information_schema.table_constraints tc
                JOIN information_schema.key_column_usage kcu
                    ON tc.constraint_name = kcu.constraint_name
                    AND tc.table_schema = kcu.table_schema
                WHERE tc.constraint_type = 'PRIMARY KEY'
            ) pk
                ON pk.table_schema = c.table_schema
                AND pk.table_name = c.table_name
                AND pk.column_name = c.column_name
            WHERE {self._schema_filter('c.table_schema', table, params)}
                AND c.table_name = {self._param('table')}
            ORDER BY c.ordinal_position
        """
        rows = await self._execute(sql, params, operation="describe_table", table=table)
        columns = [
            ColumnDescription(
                name=row[0],
                data_type=row[1],
                is_nullable=row[2] == 'YES',
                default_value=row[3],
                array_type=row[4],
                is_primary_key=bool(row[5])
            )
            for row in rows
        ]
        return self._require_columns(table, columns)

    async def get_foreign_key_references(self, table: TableName) -> ForeignKeyReferences:
        params: Dict[str, Any] = {"table": table.name}
        outgoing_sql = f"""
            SELECT kcu.column_name, ccu.table_schema, ccu.table_name, ccu.column_name, CURRENT_SCHEMA()
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
                ON tc.constraint_name = kcu.constraint_name
                AND tc.table_schema = kcu.table_schema
            JOIN information_schema.constraint_column_usage ccu
                ON ccu.constraint_name = tc.constraint_name
                AND ccu.constraint_schema = tc.constraint_schema
            WHERE tc.constraint_type = 'FOREIGN KEY'
                AND {self._schema_filter('tc.table_schema', table, params)}
                AND tc.table_name = {self._param('table')}
            ORDER BY kcu.ordinal_position
        """
        incoming_sql = f"""
            SELECT kcu2.column_name, kcu1.table_schema, kcu1.table_name, kcu1.column_name, CURRENT_SCHEMA()
            FROM information_schema.referential_constraints rc
            JOIN information_schema.key_column_usage kcu1
                ON kcu1.constraint_catalog = rc.constraint_catalog
                AND kcu1.constraint_schema = rc.constraint_schema
                AND kcu1.constraint_name = rc.constraint_name
            JOIN information_schema.key_column_usage kcu2
                ON kcu2.constraint_catalog = rc.unique_constraint_catalog
                AND kcu2.constraint_schema = rc.unique_constraint_schema
                AND kcu2.constraint_name = rc.unique_constraint_name
                AND kcu2.ordinal_position = kcu1.position_in_unique_constraint
            WHERE {self._schema_filter('kcu2.table_schema', table, params)}
                AND kcu2.table_name = {self._param('table')}
            ORDER BY kcu1.table_schema, kcu1.table_name, kcu1.ordinal_position
        """
        outgoing = await self._execute(outgoing_sql, params, operation="foreign_keys_outgoing", table=table)
        incoming = await self._execute(incoming_sql, params, operation="foreign_keys_incoming", table=table)
        return _references_from_rows(self, outgoing, incoming)


class MySQLDatabaseReader(DatabaseReader):
    """Reads the MySQL catalog; the current database plays the default schema."""

    engine = "mysql"
    current_schema_sql = "DATABASE()"
    ignored_schemas = frozenset({"information_schema", "performance_schema", "mysql", "sys"})
    ignored_databases = frozenset({"information_schema", "performance_schema", "mysql", "sys"})
    list_databases_sql = "SHOW DATABASES"

    async def list_tables(self) -> List[TableName]:
        params: Dict[str, Any] = {}
        sql = f"""
            SELECT table_schema, table_name, DATABASE()
            FROM information_schema.tables
            WHERE table_type = 'BASE TABLE'
                AND {self._schemas_filter('table_schema', params)}
            ORDER BY table_schema, table_name
        """
        rows = await self._execute(sql, params, operation="list_tables")
        return [
            self._relative_name(schema, name, current)
            for schema, name, current in rows
            if schema not in self.ignored_schemas
        ]

    async def describe_table(self, table: TableName) -> List[ColumnDescription]:
        params: Dict[str, Any] = {"table": table.name}
        sql = f"""
            SELECT column_name, data_type, is_nullable, column_default, column_key
            FROM information_schema.columns
            WHERE {self._schema_filter('table_schema', table, params)}
                AND table_name = {self._param('table')}
            ORDER BY ordinal_position
        """
        rows = await self._execute(sql, params, operation="describe_table", table=table)
        columns = [
            ColumnDescription(
                name=row[0],
                data_type=row[1],
                is_nullable=row[2] == 'YES',
                default_value=row[3],
                is_primary_key=row[4] == 'PRI'
            )
            for row in rows
        ]
        return self._require_columns(table, columns)

    async def get_foreign_key_references(self, table: TableName) -> ForeignKeyReferences:
        params: Dict[str, Any] = {"table": table.name}
        outgoing_sql = f"""
            SELECT column_name, referenced_table_schema, referenced_table_name,
                referenced_column_name, DATABASE()
            FROM information_schema.key_column_usage
            WHERE {self._schema_filter('table_schema', table, params)}
                AND table_name = {self._param('table')}
                AND referenced_table_name IS NOT NULL
            ORDER BY ordinal_position
        """
        incoming_sql = f"""
            SELECT referenced_column_name, table_schema, table_name, column_name, DATABASE()
            FROM information_schema.key_column_usage
            WHERE {self._schema_filter('referenced_table_schema', table, params)}
                AND referenced_table_name = {self._param('table')}
            ORDER BY table_schema, table_name, ordinal_position
        """
        outgoing = await self._execute(outgoing_sql, params, operation="foreign_keys_outgoing", table=table)
        incoming = await self._execute(incoming_sql, params, operation="foreign_keys_incoming", table=table)
        return _references_from_rows(self, outgoing, incoming)


_DUCKDB_ARRAY = re.compile(r"^(.*)\[\d*\]$")


def normalize_duckdb_type(data_type: str):
    """
    Split a DuckDB type string into (base type, array element type).

    'INTEGER[]' -> ('ARRAY', 'INTEGER'), 'DECIMAL(10,2)' -> ('DECIMAL', None)
    """
    data_type = data_type.strip()
    match = _DUCKDB_ARRAY.match(data_type)
    if match:
        element, _ = normalize_duckdb_type(match.group(1))
        return 'ARRAY', element
    if '(' in data_type:
        data_type = data_type.split('(')[0].strip()
    return data_type, None


class DuckDBDatabaseReader(DatabaseReader):
    """Reads a DuckDB catalog through its duckdb_* table functions."""

    engine = "duckdb"
    param_prefix = "$"
    current_schema_sql = "current_schema()"
    ignored_schemas = frozenset({"information_schema", "pg_catalog"})
    ignored_databases = frozenset({"system", "temp"})
    list_databases_sql = "SELECT database_name FROM duckdb_databases() WHERE NOT internal ORDER BY database_name"

    async def list_tables(self) -> List[TableName]:
        params: Dict[str, Any] = {}
        sql = f"""
            SELECT schema_name, table_name, current_schema()
            FROM duckdb_tables()
            WHERE NOT internal
                AND NOT temporary
                AND database_name = current_database()
                AND {self._schemas_filter('schema_name', params)}
            ORDER BY schema_name, table_name
        """
        rows = await self._execute(sql, params, operation="list_tables")
        return [
            self._relative_name(schema, name, current)
            for schema, name, current in rows
            if schema not in self.ignored_schemas
        ]

    async def describe_table(self, table: TableName) -> List[ColumnDescription]:
        params: Dict[str, Any] = {"table": table.name}
        columns_sql = f"""
            SELECT column_name, data_type, is_nullable, column_default
            FROM information_schema.columns
            WHERE table_catalog = current_database()
                AND {self._schema_filter('table_schema', table, params)}
                AND table_name = {self._param('table')}
            ORDER BY ordinal_position
        """
        keys_sql = f"""
            SELECT constraint_column_names
            FROM duckdb_constraints()
            WHERE constraint_type = 'PRIMARY KEY'
                AND database_name = current_database()
                AND {self._schema_filter('schema_name', table, params)}
                AND table_name = {self._param('table')}
        """
        rows = await self._execute(columns_sql, params, operation="describe_table", table=table)
        key_rows = await self._execute(keys_sql, params, operation="primary_keys", table=table)
        key_columns = {name for row in key_rows for name in (row[0] or [])}

        columns = []
        for name, data_type, is_nullable, default_value in rows:
            base_type, array_type = normalize_duckdb_type(data_type)
            columns.append(ColumnDescription(
                name=name,
                data_type=base_type,
                is_nullable=is_nullable == 'YES',
                default_value=default_value,
                array_type=array_type,
                is_primary_key=name in key_columns
            ))
        return self._require_columns(table, columns)

    async def get_foreign_key_references(self, table: TableName) -> ForeignKeyReferences:
        params: Dict[str, Any] = {"table": table.name}
        outgoing_sql = f"""
            SELECT constraint_column_names, schema_name, referenced_table,
                referenced_column_names, current_schema()
            FROM duckdb_constraints()
            WHERE constraint_type = 'FOREIGN KEY'
                AND database_name = current_database()
                AND {self._schema_filter('schema_name', table, params)}
                AND table_name = {self._param('table')}
            ORDER BY constraint_index
        """
        incoming_sql = f"""
            SELECT referenced_column_names, schema_name, table_name,
                constraint_column_names, current_schema()
            FROM duckdb_constraints()
            WHERE constraint_type = 'FOREIGN KEY'
                AND database_name = current_database()
                AND {self._schema_filter('schema_name', table, params)}
                AND referenced_table = {self._param('table')}
            ORDER BY schema_name, table_name, constraint_index
        """
        outgoing = await self._execute(outgoing_sql, params, operation="foreign_keys_outgoing", table=table)
        incoming = await self._execute(incoming_sql, params, operation="foreign_keys_incoming", table=table)

        # Constraint columns come back as lists; pair them up per column
        def expand(rows):
            for local_columns, schema, other_table, other_columns, current in rows:
                for local, other in zip(local_columns or [], other_columns or []):
                    yield local, schema, other_table, other, current

        return _references_from_rows(self, list(expand(outgoing)), list(expand(incoming)))


def _references_from_rows(reader: DatabaseReader, outgoing_rows, incoming_rows) -> ForeignKeyReferences:
    """
    Build references from rows shaped (local column, schema, table, column, current schema).

    Incoming edges are keyed by the referencing table, so a table that points
    here through several columns keeps only its last edge.
    """
    outgoing = {}
    for local_column, schema, foreign_table, foreign_column, current in outgoing_rows:
        outgoing[local_column] = RelationshipEdge(
            source_column=local_column,
            target_table=reader._relative_name(schema, foreign_table, current),
            target_column=foreign_column
        )

    incoming = {}
    for local_column, schema, foreign_table, foreign_column, current in incoming_rows:
        referencing = reader._relative_name(schema, foreign_table, current)
        incoming[referencing] = RelationshipEdge(
            source_column=local_column,
            target_table=referencing,
            target_column=foreign_column
        )

    return ForeignKeyReferences.build(outgoing, incoming)


READERS: Dict[str, Type[DatabaseReader]] = {
    "postgresql": PostgreSQLDatabaseReader,
    "aurora-postgresql": PostgreSQLDatabaseReader,
    "mysql": MySQLDatabaseReader,
    "aurora-mysql": MySQLDatabaseReader,
    "aurora": MySQLDatabaseReader,
    "duckdb": DuckDBDatabaseReader,
}


def create_reader(engine: str,
                  client: DataAPIClient,
                  connection: Optional[ConnectionInfo] = None,
                  schemas: Optional[List[str]] = None,
                  **kwargs) -> DatabaseReader:
    """Select the reader for ``engine`` once; unknown engines are rejected."""
    reader_class = READERS.get((engine or "").lower())
    if reader_class is None:
        raise ValidationError(
            f"Unsupported database engine '{engine}'",
            field_name="engine",
            expected_type=" | ".join(sorted(READERS)),
            actual_value=engine,
            suggestions=[f"Use one of: {', '.join(sorted(READERS))}"]
        )
    logger.debug(f"Using {reader_class.__name__} for engine '{engine}'")
    return reader_class(client, connection=connection, schemas=schemas, **kwargs)
