"""Catalog introspection and GraphQL schema assembly."""

from .model import TableName, ColumnDescription, RelationshipEdge, ForeignKeyReferences
from .clients import DataAPIClient, DuckDBClient
from .context import ConnectionInfo, TableContext, TemplateContext, TemplateContextBuilder
from .types import ScalarKind, map_scalar_type
from .introspection import DatabaseReader
from .readers import (
    PostgreSQLDatabaseReader,
    MySQLDatabaseReader,
    DuckDBDatabaseReader,
    READERS,
    create_reader,
)
from .relationships import Relation, RelationKind, RelationshipResolver, derive_relations
from .builder import TypeBuilder
from .assembler import SchemaAssembler, print_schema, validate_document

__all__ = [
    "TableName",
    "ColumnDescription",
    "RelationshipEdge",
    "ForeignKeyReferences",
    "DataAPIClient",
    "DuckDBClient",
    "ConnectionInfo",
    "TableContext",
    "TemplateContext",
    "TemplateContextBuilder",
    "ScalarKind",
    "map_scalar_type",
    "DatabaseReader",
    "PostgreSQLDatabaseReader",
    "MySQLDatabaseReader",
    "DuckDBDatabaseReader",
    "READERS",
    "create_reader",
    "Relation",
    "RelationKind",
    "RelationshipResolver",
    "derive_relations",
    "TypeBuilder",
    "SchemaAssembler",
    "print_schema",
    "validate_document",
]
