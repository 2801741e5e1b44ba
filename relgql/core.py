"""Core relgql implementation."""

import json
import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional

import duckdb

from .exceptions import ConnectionError, QueryError, SchemaError, ValidationError
from .metrics import MetricsCollector
from .resolvers.generator import (
    DATA_SOURCE_NAME,
    ArtifactWriter,
    DirectoryWriter,
    ResolverGenerator,
    ResolverResource,
    data_source_config,
    write_artifact,
)
from .schema.assembler import SchemaAssembler, print_schema, validate_document
from .schema.builder import TypeBuilder
from .schema.clients import DuckDBClient
from .schema.context import ConnectionInfo, TemplateContext, TemplateContextBuilder
from .schema.introspection import DatabaseReader
from .schema.readers import create_reader

logger = logging.getLogger(__name__)


def _error_message(error: Exception) -> str:
    return getattr(error, "message", str(error))


def _with_location(error: ConnectionError, operation: str, table=None) -> ConnectionError:
    """Fill in where a connection failure happened, keeping what the reader recorded."""
    if not error.context.get("operation"):
        error.context["operation"] = operation
    if table is not None:
        error.context["table"] = str(table)
    return error


class RelationalSchemaTransformer:
    """
    Turns the tables a reader sees into a template context.

    Tables are processed one at a time, in the order the reader lists them.
    Tables without a primary key are skipped with a warning; any catalog
    failure aborts the run.
    """

    def __init__(self, reader: DatabaseReader, database_name: Optional[str] = None):
        self.reader = reader
        self.database_name = database_name or reader.connection.database_name or reader.engine
        self.type_builder = TypeBuilder(reader)

    async def introspect_database_schema(self) -> TemplateContext:
        correlation_id = str(uuid.uuid4())

        try:
            tables = await self.reader.list_tables()
        except ConnectionError as e:
            logger.error(f"[{correlation_id}] Lost connection listing tables in {self.database_name}: {e.message}")
            raise _with_location(e, "list_tables")
        except Exception as e:
            logger.error(f"[{correlation_id}] Failed to list tables in {self.database_name}: {e}")
            raise QueryError(
                f"Failed to list tables in {self.database_name}",
                operation="list_tables",
                context={"original_error": _error_message(e)},
                correlation_id=getattr(e, "correlation_id", correlation_id)
            ) from e

        logger.info(f"[{correlation_id}] Introspecting {len(tables)} tables in {self.database_name}")

        builder = TemplateContextBuilder()
        for table in tables:
            try:
                table_context = await self.type_builder.build_table_context(table)
            except ConnectionError as e:
                logger.error(f"[{correlation_id}] Lost connection describing table {table}: {e.message}")
                raise _with_location(e, "describe_table", table)
            except Exception as e:
                logger.error(f"[{correlation_id}] Failed to describe table {table}: {e}")
                raise QueryError(
                    f"Failed to describe table {table}",
                    table_name=str(table),
                    operation="describe_table",
                    context={"original_error": _error_message(e)},
                    correlation_id=getattr(e, "correlation_id", correlation_id)
                ) from e

            if not table_context.has_primary_key:
                message = f"Skipping table {table} because it does not have a single PRIMARY KEY."
                logger.warning(message)
                builder.add_warning(message)
                continue

            builder.add_table(table_context)

        assembler = SchemaAssembler()
        document = assembler.assemble(builder.table_contexts)
        for warning in assembler.warnings:
            builder.add_warning(warning)

        return self.reader.hydrate_context(builder.build(document))


class RelGQL:
    """Generates a GraphQL schema and resolver templates from a relational database."""

    def __init__(self, reader: DatabaseReader, database_name: Optional[str] = None):
        """
        Args:
            reader: Catalog reader for the source database
            database_name: Name used in log and error messages
        """
        self.reader = reader
        self.transformer = RelationalSchemaTransformer(reader, database_name)
        self._context: Optional[TemplateContext] = None

    @classmethod
    def from_duckdb(cls,
                    database: str = ":memory:",
                    connection: Optional[duckdb.DuckDBPyConnection] = None,
                    schemas: Optional[Iterable[str]] = None,
                    log_queries: bool = False,
                    slow_query_ms: int = 1000,
                    enable_metrics: bool = True,
                    **connection_info) -> "RelGQL":
        """
        Build an instance over a DuckDB database file or an open connection.

        Extra keyword arguments become :class:`ConnectionInfo` fields
        (``region``, ``cluster_identifier``, ``secret_store_arn``,
        ``database_name``) for the generated data source.
        """
        if connection is not None:
            client = DuckDBClient(connection)
        else:
            client = DuckDBClient.from_path(database)

        connection_info.setdefault("database_name", database)
        reader = create_reader(
            "duckdb",
            client,
            connection=ConnectionInfo(engine="duckdb", **connection_info),
            schemas=schemas,
            log_queries=log_queries,
            slow_query_ms=slow_query_ms,
            metrics=MetricsCollector() if enable_metrics else None
        )
        return cls(reader, database_name=connection_info["database_name"])

    async def introspect(self, refresh: bool = False) -> TemplateContext:
        """Introspect once and reuse the context unless ``refresh`` is set."""
        if self._context is None or refresh:
            self._context = await self.transformer.introspect_database_schema()
        return self._context

    async def get_schema(self) -> str:
        context = await self.introspect()
        return print_schema(context.document)

    async def validate(self) -> List[str]:
        context = await self.introspect()
        return validate_document(context.document)

    async def generate(self,
                       output: Optional[str] = None,
                       writer: Optional[ArtifactWriter] = None) -> Dict[str, ResolverResource]:
        """
        Write ``schema.graphql``, the resolver templates under ``resolvers/``
        and ``stack.json`` with the data source and resolver resources.

        Nothing is written when the assembled schema does not validate;
        :class:`SchemaError` carries the validation messages instead.
        """
        if writer is None:
            if output is None:
                raise ValidationError(
                    "Either an output directory or a writer is required",
                    field_name="output"
                )
            writer = DirectoryWriter(output)

        context = await self.introspect()
        errors = validate_document(context.document)
        if errors:
            raise SchemaError(
                f"Generated schema for {self.transformer.database_name} is invalid",
                context={"errors": errors},
                suggestions=[
                    "Rename columns that collide with relationship fields",
                    "Run 'relgql schema <database> --validate' to inspect the schema"
                ]
            )
        write_artifact(writer, "schema.graphql", print_schema(context.document), operation="schema")

        resources = ResolverGenerator(context, writer, directory="resolvers").create_resolvers()

        stack: Dict[str, Any] = {
            "Resources": {
                DATA_SOURCE_NAME: data_source_config(context),
                **{name: resource.to_dict() for name, resource in resources.items()},
            }
        }
        write_artifact(writer, "stack.json", json.dumps(stack, indent=2) + "\n", operation="stack")

        for warning in context.warnings:
            logger.warning(warning)
        logger.info(f"Wrote schema, {len(resources) * 2} resolver templates and stack for {len(context.tables)} tables")
        return resources

    def get_stats(self) -> Dict[str, Any]:
        """Catalog call statistics, empty when metrics are disabled."""
        if self.reader.metrics is None:
            return {}
        return self.reader.metrics.get_stats()

    def close(self) -> None:
        self.reader.client.close()
