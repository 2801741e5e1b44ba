"""Database introspection contract shared by every engine reader."""

import dataclasses
import logging
import time
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from ..exceptions import QueryError, enhance_database_error
from ..metrics import MetricsCollector
from .clients import DataAPIClient, Record
from .context import ConnectionInfo, TemplateContext
from .model import ColumnDescription, ForeignKeyReferences, TableName
from .types import ScalarKind, map_scalar_type

logger = logging.getLogger(__name__)


class DatabaseReader(ABC):
    """
    Reads tables, columns and foreign keys from one database engine.

    Subclasses supply the catalog SQL for their engine. Every statement goes
    through :meth:`_execute`, which binds values as named parameters, logs,
    records metrics and turns driver failures into :class:`QueryError`.
    """

    engine: str = ""
    param_prefix: str = ":"
    current_schema_sql: str = "CURRENT_SCHEMA()"
    ignored_schemas: FrozenSet[str] = frozenset()
    ignored_databases: FrozenSet[str] = frozenset()
    list_databases_sql: str = "SELECT datname FROM pg_database WHERE datistemplate = false"

    def __init__(self,
                 client: DataAPIClient,
                 connection: Optional[ConnectionInfo] = None,
                 schemas: Optional[Iterable[str]] = None,
                 log_queries: bool = False,
                 slow_query_ms: int = 1000,
                 metrics: Optional[MetricsCollector] = None):
        """
        Args:
            client: Executes catalog statements
            connection: Connectivity metadata merged into the template context
            schemas: Schemas to read tables from; defaults to the current schema
            log_queries: Log every catalog statement at DEBUG level
            slow_query_ms: Threshold in milliseconds for slow statement warnings
            metrics: Optional collector for catalog round trips
        """
        self.client = client
        self.connection = connection or ConnectionInfo(engine=self.engine)
        self.schemas = [s for s in (schemas or []) if s not in self.ignored_schemas]
        self.log_queries = log_queries
        self.slow_query_ms = slow_query_ms
        self.metrics = metrics

    @abstractmethod
    async def list_tables(self) -> List[TableName]:
        """All user tables in the configured schemas, in catalog order."""

    @abstractmethod
    async def describe_table(self, table: TableName) -> List[ColumnDescription]:
        """Columns of ``table`` in ordinal order; raises QueryError if it does not exist."""

    @abstractmethod
    async def get_foreign_key_references(self, table: TableName) -> ForeignKeyReferences:
        """Foreign keys declared on ``table`` and those pointing at it."""

    async def list_databases(self) -> List[str]:
        """Databases visible to the client, minus the engine's system databases."""
        rows = await self._execute(self.list_databases_sql, operation="list_databases")
        return [row[0] for row in rows if row[0] not in self.ignored_databases]

    async def list_schemas(self) -> List[str]:
        """Schemas of the current database, minus the engine's system schemas."""
        rows = await self._execute(
            "SELECT schema_name FROM information_schema.schemata ORDER BY schema_name",
            operation="list_schemas"
        )
        return [row[0] for row in rows if row[0] not in self.ignored_schemas]

    def hydrate_context(self, context: TemplateContext) -> TemplateContext:
        """Return ``context`` with this reader's connectivity metadata attached."""
        return dataclasses.replace(
            context,
            connection=dataclasses.replace(self.connection, engine=self.engine, database_schema="")
        )

    def map_scalar_type(self, source_type: Optional[str]) -> ScalarKind:
        return map_scalar_type(source_type, self.type_map_name)

    @property
    def type_map_name(self) -> str:
        return self.engine

    def _param(self, name: str) -> str:
        return f"{self.param_prefix}{name}"

    def _schema_filter(self, column: str, table: TableName, params: Dict[str, Any]) -> str:
        """Predicate selecting ``table``'s schema, defaulting to the current one."""
        if table.schema is None:
            return f"{column} = {self.current_schema_sql}"
        params["schema"] = table.schema
        return f"{column} = {self._param('schema')}"

    def _schemas_filter(self, column: str, params: Dict[str, Any]) -> str:
        """Predicate selecting the configured schemas."""
        if not self.schemas:
            return f"{column} = {self.current_schema_sql}"
        placeholders = []
        for i, schema in enumerate(self.schemas):
            params[f"schema{i}"] = schema
            placeholders.append(self._param(f"schema{i}"))
        return f"{column} IN ({', '.join(placeholders)})"

    @staticmethod
    def _relative_name(schema: Optional[str], name: str, current_schema: Optional[str]) -> TableName:
        """Drop the schema prefix for tables in the current default schema."""
        if not schema or schema == current_schema:
            return TableName(name=name)
        return TableName(name=name, schema=schema)

    async def _execute(self,
                       sql: str,
                       params: Optional[Dict[str, Any]] = None,
                       operation: str = "query",
                       table: Optional[TableName] = None) -> List[Record]:
        """Run one catalog statement with logging, metrics and error enhancement."""
        correlation_id = str(uuid.uuid4())
        table_name = str(table) if table else None

        call_metrics = None
        if self.metrics:
            call_metrics = self.metrics.start_call(correlation_id, operation, table_name)

        if self.log_queries:
            logger.debug(
                f"[{correlation_id}] {operation}: {sql[:200]}{'...' if len(sql) > 200 else ''}",
                extra={"correlation_id": correlation_id, "sql": sql, "params": params}
            )

        start_time = time.time()
        try:
            rows = await self.client.execute_statement(sql, params or None)
        except Exception as e:
            execution_time = (time.time() - start_time) * 1000
            if call_metrics:
                self.metrics.complete_call(call_metrics, error=str(e))
            logger.error(
                f"[{correlation_id}] {operation} failed after {execution_time:.2f}ms: {e}",
                extra={"correlation_id": correlation_id, "sql": sql, "error_type": type(e).__name__}
            )
            raise enhance_database_error(
                e,
                operation=operation,
                table=table_name,
                sql=sql,
                correlation_id=correlation_id
            ) from e

        execution_time = (time.time() - start_time) * 1000
        rows = list(rows)
        if call_metrics:
            self.metrics.complete_call(call_metrics, row_count=len(rows))

        if execution_time > self.slow_query_ms:
            logger.warning(
                f"[{correlation_id}] Slow catalog query: {execution_time:.2f}ms - {operation}"
                f"{f' on {table_name}' if table_name else ''}",
                extra={"correlation_id": correlation_id, "execution_time_ms": execution_time}
            )
        elif self.log_queries:
            logger.debug(
                f"[{correlation_id}] {operation} completed in {execution_time:.2f}ms, "
                f"returned {len(rows)} rows"
            )

        return rows

    def _require_columns(self, table: TableName, columns: List[ColumnDescription]) -> List[ColumnDescription]:
        if not columns:
            raise QueryError(
                f"Table '{table}' does not exist",
                table_name=str(table),
                operation="describe_table",
                suggestions=[
                    "Check if the table name is spelled correctly",
                    "Make sure the configured schemas include the table"
                ]
            )
        return columns
