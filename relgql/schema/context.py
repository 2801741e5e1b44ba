"""Immutable per-table and per-run contexts handed to the generators."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from graphql import DocumentNode, InputObjectTypeDefinitionNode, ObjectTypeDefinitionNode

from .model import ForeignKeyReferences, TableName


@dataclass(frozen=True)
class ConnectionInfo:
    """Connectivity metadata the packaging layer needs to build a data source."""
    engine: str = ""
    region: Optional[str] = None
    cluster_identifier: Optional[str] = None
    secret_store_arn: Optional[str] = None
    database_name: Optional[str] = None
    database_schema: str = ""


@dataclass(frozen=True)
class TableContext:
    """Everything generated for a single table."""
    table: TableName
    type_name: str
    entity_type: ObjectTypeDefinitionNode
    create_input: InputObjectTypeDefinitionNode
    update_input: InputObjectTypeDefinitionNode
    key_fields: Tuple[str, ...]
    key_field_types: Tuple[str, ...]
    string_fields: Tuple[str, ...]
    int_fields: Tuple[str, ...]
    keys_input: Optional[InputObjectTypeDefinitionNode]
    relationships: Mapping[TableName, ForeignKeyReferences]
    columns: Tuple[str, ...] = ()

    @property
    def has_primary_key(self) -> bool:
        return bool(self.key_fields)


def _frozen(mapping: Dict) -> Mapping:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class TemplateContext:
    """
    The result of one introspection run.

    Per-table maps are keyed by :class:`TableName` and only contain tables that
    made it into the schema. ``relationships`` additionally holds the edges of
    junction candidates fetched along the way.
    """
    document: DocumentNode
    type_names: Mapping[TableName, str]
    primary_keys: Mapping[TableName, Tuple[str, ...]]
    primary_key_types: Mapping[TableName, Tuple[str, ...]]
    string_fields: Mapping[TableName, Tuple[str, ...]]
    int_fields: Mapping[TableName, Tuple[str, ...]]
    relationships: Mapping[TableName, ForeignKeyReferences]
    columns: Mapping[TableName, Tuple[str, ...]]
    warnings: Tuple[str, ...] = ()
    connection: ConnectionInfo = field(default_factory=ConnectionInfo)

    @property
    def tables(self) -> Tuple[TableName, ...]:
        return tuple(self.primary_keys)


class TemplateContextBuilder:
    """Accumulates table contexts, one table at a time, then freezes them."""

    def __init__(self):
        self._tables: List[TableContext] = []
        self._warnings: List[str] = []

    def add_table(self, table_context: TableContext) -> "TemplateContextBuilder":
        self._tables.append(table_context)
        return self

    def add_warning(self, message: str) -> "TemplateContextBuilder":
        self._warnings.append(message)
        return self

    @property
    def table_contexts(self) -> Tuple[TableContext, ...]:
        return tuple(self._tables)

    def build(self, document: DocumentNode, connection: Optional[ConnectionInfo] = None) -> TemplateContext:
        relationships: Dict[TableName, ForeignKeyReferences] = {}
        for table_context in self._tables:
            for table, references in table_context.relationships.items():
                relationships.setdefault(table, references)

        return TemplateContext(
            document=document,
            type_names=_frozen({t.table: t.type_name for t in self._tables}),
            primary_keys=_frozen({t.table: t.key_fields for t in self._tables}),
            primary_key_types=_frozen({t.table: t.key_field_types for t in self._tables}),
            string_fields=_frozen({t.table: t.string_fields for t in self._tables}),
            int_fields=_frozen({t.table: t.int_fields for t in self._tables}),
            relationships=_frozen(relationships),
            columns=_frozen({t.table: t.columns for t in self._tables}),
            warnings=tuple(self._warnings),
            connection=connection or ConnectionInfo(),
        )
