"""Mapping from source SQL column types to GraphQL scalars."""

from enum import Enum
from typing import Dict, Optional

from graphql import TypeNode

from .model import ColumnDescription
from .nodes import list_of, named_type


class ScalarKind(Enum):
    """Scalar kinds a column can surface as."""
    BOOLEAN = "Boolean"
    INT = "Int"
    FLOAT = "Float"
    LIST = "List"
    STRING = "String"
    JSON = "JSON"
    DATE = "Date"
    TIME = "Time"
    DATETIME = "DateTime"
    TIMESTAMP = "Timestamp"
    ID = "ID"

    @property
    def graphql_name(self) -> str:
        """Name of the scalar in the emitted schema."""
        return _GRAPHQL_NAMES.get(self, self.value)


_GRAPHQL_NAMES = {
    ScalarKind.JSON: "AWSJSON",
    ScalarKind.DATE: "AWSDate",
    ScalarKind.TIME: "AWSTime",
    ScalarKind.DATETIME: "AWSDateTime",
    ScalarKind.TIMESTAMP: "AWSTimestamp",
}

# Scalars the emitted schema uses beyond the GraphQL built-ins
CUSTOM_SCALARS = tuple(sorted(_GRAPHQL_NAMES.values()))

NUMERIC_SCALARS = frozenset({ScalarKind.INT.graphql_name, ScalarKind.FLOAT.graphql_name})


POSTGRESQL_TYPE_MAP: Dict[str, ScalarKind] = {
    'ARRAY': ScalarKind.LIST,
    'BOOLEAN': ScalarKind.BOOLEAN,
    'JSON': ScalarKind.JSON,
    'JSONB': ScalarKind.JSON,
    'TIME': ScalarKind.TIME,
    'TIME WITHOUT TIME ZONE': ScalarKind.TIME,
    'DATE': ScalarKind.DATE,
    'DATETIME': ScalarKind.DATETIME,
    'TIMESTAMP': ScalarKind.TIMESTAMP,
    'TIMESTAMP WITHOUT TIME ZONE': ScalarKind.TIMESTAMP,
    'UUID': ScalarKind.ID,

    'INTEGER': ScalarKind.INT,
    'SMALLINT': ScalarKind.INT,
    'BIGINT': ScalarKind.INT,
    'SERIAL': ScalarKind.INT,
    'SMALLSERIAL': ScalarKind.INT,
    'BIGSERIAL': ScalarKind.INT,

    'FLOAT': ScalarKind.FLOAT,
    'DECIMAL': ScalarKind.FLOAT,
    'REAL': ScalarKind.FLOAT,
    'NUMERIC': ScalarKind.FLOAT,
    'DOUBLE PRECISION': ScalarKind.FLOAT,
}

MYSQL_TYPE_MAP: Dict[str, ScalarKind] = {
    'DATETIME': ScalarKind.DATETIME,
    'DATE': ScalarKind.DATE,
    'TIME': ScalarKind.TIME,
    'TIMESTAMP': ScalarKind.TIMESTAMP,
    'JSON': ScalarKind.JSON,
    'BOOL': ScalarKind.BOOLEAN,
    'BOOLEAN': ScalarKind.BOOLEAN,

    'INT': ScalarKind.INT,
    'INTEGER': ScalarKind.INT,
    'SMALLINT': ScalarKind.INT,
    'TINYINT': ScalarKind.INT,
    'MEDIUMINT': ScalarKind.INT,
    'BIGINT': ScalarKind.INT,
    'BIT': ScalarKind.INT,

    'FLOAT': ScalarKind.FLOAT,
    'DOUBLE': ScalarKind.FLOAT,
    'REAL': ScalarKind.FLOAT,
    'REAL_AS_FLOAT': ScalarKind.FLOAT,
    'DOUBLE PRECISION': ScalarKind.FLOAT,
    'DEC': ScalarKind.FLOAT,
    'DECIMAL': ScalarKind.FLOAT,
    'FIXED': ScalarKind.FLOAT,
    'NUMERIC': ScalarKind.FLOAT,
}

DUCKDB_TYPE_MAP: Dict[str, ScalarKind] = {
    # Numeric types
    'BIGINT': ScalarKind.INT,
    'INTEGER': ScalarKind.INT,
    'INT': ScalarKind.INT,
    'SMALLINT': ScalarKind.INT,
    'TINYINT': ScalarKind.INT,
    'UBIGINT': ScalarKind.INT,
    'UINTEGER': ScalarKind.INT,
    'USMALLINT': ScalarKind.INT,
    'UTINYINT': ScalarKind.INT,
    'HUGEINT': ScalarKind.INT,
    'UHUGEINT': ScalarKind.INT,

    # Floating point
    'DOUBLE': ScalarKind.FLOAT,
    'REAL': ScalarKind.FLOAT,
    'FLOAT': ScalarKind.FLOAT,
    'DECIMAL': ScalarKind.FLOAT,
    'NUMERIC': ScalarKind.FLOAT,

    # Boolean
    'BOOLEAN': ScalarKind.BOOLEAN,
    'BOOL': ScalarKind.BOOLEAN,

    # Date/Time types
    'DATE': ScalarKind.DATE,
    'TIME': ScalarKind.TIME,
    'TIMESTAMP': ScalarKind.TIMESTAMP,
    'TIMESTAMP WITHOUT TIME ZONE': ScalarKind.TIMESTAMP,
    'TIMESTAMP WITH TIME ZONE': ScalarKind.DATETIME,
    'TIMESTAMPTZ': ScalarKind.DATETIME,

    'JSON': ScalarKind.JSON,
    'UUID': ScalarKind.ID,
    'ARRAY': ScalarKind.LIST,
}

ENGINE_TYPE_MAPS: Dict[str, Dict[str, ScalarKind]] = {
    'postgresql': POSTGRESQL_TYPE_MAP,
    'mysql': MYSQL_TYPE_MAP,
    'duckdb': DUCKDB_TYPE_MAP,
}


def map_scalar_type(source_type: Optional[str], engine: str = 'postgresql') -> ScalarKind:
    """
    Map a source type name to a scalar kind.

    Matching is exact after trimming and upper-casing, so near-misses and
    parameterized names such as ``INT(100)`` fall through to ``String``.
    Unknown names never raise.
    """
    if not source_type:
        return ScalarKind.STRING
    type_map = ENGINE_TYPE_MAPS.get(engine, POSTGRESQL_TYPE_MAP)
    return type_map.get(source_type.strip().upper(), ScalarKind.STRING)


def column_base_type(column: ColumnDescription, engine: str) -> TypeNode:
    """
    Nullable GraphQL type for a column.

    Array columns become a list of their element's scalar; an array whose
    element type is unknown becomes ``[String]``.
    """
    kind = map_scalar_type(column.data_type, engine)
    if kind is ScalarKind.LIST or column.array_type:
        element = map_scalar_type(column.array_type, engine) if column.array_type else ScalarKind.STRING
        if element is ScalarKind.LIST:
            element = ScalarKind.STRING
        return list_of(named_type(element.graphql_name))
    return named_type(kind.graphql_name)
