"""Catalog metadata returned by database readers."""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, NamedTuple, Optional, Tuple


@dataclass(frozen=True)
class TableName:
    """
    A table reference as seen from the connection's default schema.

    ``schema`` is None when the table lives in the current default schema.
    Generated SQL then refers to the bare table name, so the templates keep
    working only as long as the data source resolves the same default schema.
    """
    name: str
    schema: Optional[str] = None

    @property
    def parts(self) -> Tuple[str, ...]:
        return (self.schema, self.name) if self.schema else (self.name,)

    @classmethod
    def parse(cls, value: str) -> "TableName":
        """Parse 'schema.table' or 'table'."""
        schema, _, name = value.rpartition(".")
        return cls(name=name, schema=schema or None)

    def __str__(self) -> str:
        return ".".join(self.parts)


@dataclass(frozen=True)
class ColumnDescription:
    """Information about a database column."""
    name: str
    data_type: str
    is_nullable: bool
    is_primary_key: bool = False
    default_value: Optional[str] = None
    array_type: Optional[str] = None


class RelationshipEdge(NamedTuple):
    """
    One foreign-key column pair.

    For an outgoing edge ``source_column`` is the local foreign-key column and
    ``target_table.target_column`` the referenced column. For an incoming edge
    ``source_column`` is the local referenced column and
    ``target_table.target_column`` the foreign-key column pointing at it.
    """
    source_column: str
    target_table: TableName
    target_column: str


class ForeignKeyReferences(NamedTuple):
    """Outgoing edges keyed by local column, incoming edges keyed by referencing table."""
    outgoing: Mapping[str, RelationshipEdge]
    incoming: Mapping[TableName, RelationshipEdge]

    @classmethod
    def build(cls, outgoing=None, incoming=None) -> "ForeignKeyReferences":
        return cls(
            outgoing=MappingProxyType(dict(outgoing or {})),
            incoming=MappingProxyType(dict(incoming or {})),
        )


NO_REFERENCES = ForeignKeyReferences.build()
