"""Resolver templates and the SQL behind them."""

from .sql import SQLDialect, PostgreSQLDialect, MySQLDialect, DuckDBDialect, TableQueries, get_dialect
from .pagination import (
    DEFAULT_PAGE_LIMIT,
    ListArguments,
    Page,
    build_list_statement,
    decode_relation_fields,
    page_arguments,
    paginate,
)
from .generator import (
    ArtifactWriter,
    DirectoryWriter,
    MemoryWriter,
    ResolverGenerator,
    ResolverResource,
    data_source_config,
)

__all__ = [
    "SQLDialect",
    "PostgreSQLDialect",
    "MySQLDialect",
    "DuckDBDialect",
    "TableQueries",
    "get_dialect",
    "DEFAULT_PAGE_LIMIT",
    "ListArguments",
    "Page",
    "build_list_statement",
    "decode_relation_fields",
    "page_arguments",
    "paginate",
    "ArtifactWriter",
    "DirectoryWriter",
    "MemoryWriter",
    "ResolverGenerator",
    "ResolverResource",
    "data_source_config",
]
