"""SQL statements behind the generated resolvers, built as sqlglot expressions."""

import logging
from typing import Dict, List, Optional, Sequence, Type

from sqlglot import exp

from ..exceptions import ValidationError
from ..schema.context import TemplateContext
from ..schema.model import TableName
from ..schema.relationships import Relation, derive_relations

logger = logging.getLogger(__name__)

# Data API parameters are always written ':name', whatever the engine
BIND_PREFIX = ":"

ROOT_ALIAS = "root"
RELATED_ALIAS = "related"
JUNCTION_ALIAS = "junction"


class SQLDialect:
    """
    Renders expressions for one engine.

    Identifiers are always quoted; values only ever appear as named
    placeholders bound by the data source.
    """

    name = "postgres"

    def render(self, expression: exp.Expression) -> str:
        return expression.sql(dialect=self.name, identify=True)

    def identifier(self, name: str) -> str:
        return self.render(exp.to_identifier(name, quoted=True))

    def table(self, table: TableName, alias: Optional[str] = None) -> exp.Table:
        return exp.table_(table.name, db=table.schema, alias=alias)

    def placeholder(self, name: str) -> exp.Expression:
        # A verbatim node; sqlglot's own placeholders follow each dialect's paramstyle
        return exp.Var(this=f"{BIND_PREFIX}{name}")

    @property
    def bind_prefix(self) -> str:
        """Text preceding a parameter name, e.g. ':' for ':key0'."""
        return BIND_PREFIX

    def empty_collection(self) -> exp.Expression:
        return exp.Literal.string("[]")

    def collect(self, alias: str, columns: Sequence[str]) -> exp.Expression:
        """JSON array of the rows under ``alias``."""
        return exp.Anonymous(
            this="json_agg",
            expressions=[exp.Column(this=exp.Star(), table=exp.to_identifier(alias))]
        )

    def aggregate(self, alias: str, columns: Sequence[str]) -> exp.Expression:
        """Collection of the rows under ``alias``, or an empty collection when there are none."""
        return exp.Coalesce(this=self.collect(alias, columns), expressions=[self.empty_collection()])

    def _json_object(self, function: str, alias: str, columns: Sequence[str]) -> exp.Expression:
        arguments = []
        for column in columns:
            arguments.append(exp.Literal.string(column))
            arguments.append(exp.column(column, table=alias))
        return exp.Anonymous(this=function, expressions=arguments)


class PostgreSQLDialect(SQLDialect):
    name = "postgres"


class MySQLDialect(SQLDialect):
    name = "mysql"

    def empty_collection(self) -> exp.Expression:
        return exp.Anonymous(this="JSON_ARRAY", expressions=[])

    def collect(self, alias: str, columns: Sequence[str]) -> exp.Expression:
        return exp.Anonymous(
            this="JSON_ARRAYAGG",
            expressions=[self._json_object("JSON_OBJECT", alias, columns)]
        )


class DuckDBDialect(SQLDialect):
    name = "duckdb"

    def collect(self, alias: str, columns: Sequence[str]) -> exp.Expression:
        return exp.Anonymous(
            this="json_group_array",
            expressions=[self._json_object("json_object", alias, columns)]
        )


DIALECTS: Dict[str, Type[SQLDialect]] = {
    "postgresql": PostgreSQLDialect,
    "aurora-postgresql": PostgreSQLDialect,
    "mysql": MySQLDialect,
    "aurora-mysql": MySQLDialect,
    "aurora": MySQLDialect,
    "duckdb": DuckDBDialect,
}


def get_dialect(engine: str) -> SQLDialect:
    """Dialect for an engine tag; the tag set matches the reader registry."""
    dialect_class = DIALECTS.get((engine or "").lower())
    if dialect_class is None:
        raise ValidationError(
            f"Unsupported engine '{engine}'",
            field_name="engine",
            actual_value=engine,
            suggestions=[f"Use one of: {', '.join(sorted(DIALECTS))}"]
        )
    return dialect_class()


def _unique_alias(alias: str, taken) -> str:
    while alias in taken:
        alias = f"{alias}_"
    return alias


class TableQueries:
    """
    Statements for one table's resolvers.

    Every relation to a table that is part of the schema becomes a
    correlated subquery collecting its rows, so relations never multiply
    each other's rows and no grouping is needed. The root alias differs
    from every field name and from the subquery aliases.
    """

    def __init__(self, context: TemplateContext, table: TableName, dialect: SQLDialect):
        self.context = context
        self.table = table
        self.dialect = dialect
        self.key_fields = tuple(context.primary_keys[table])
        self.key_field_types = tuple(context.primary_key_types[table])
        self.relations = derive_relations(table, context.relationships)
        self.alias = _unique_alias(
            ROOT_ALIAS,
            {r.field_name for r in self.relations} | {RELATED_ALIAS, JUNCTION_ALIAS}
        )

    @property
    def exposed_relations(self) -> List[Relation]:
        return [r for r in self.relations if r.target_table in self.context.type_names]

    @property
    def list_relation_fields(self) -> List[str]:
        return [r.field_name for r in self.exposed_relations if r.is_list]

    @property
    def single_relation_fields(self) -> List[str]:
        return [r.field_name for r in self.exposed_relations if not r.is_list]

    @property
    def columns(self) -> Dict[str, str]:
        """Column name to quoted identifier."""
        return {c: self.dialect.identifier(c) for c in self.context.columns[self.table]}

    @property
    def qualified_columns(self) -> Dict[str, str]:
        """Column name to quoted identifier qualified with the root alias."""
        return {
            c: self.dialect.render(exp.column(c, table=self.alias))
            for c in self.context.columns[self.table]
        }

    def key_placeholder(self, position: int) -> str:
        return f"key{position}"

    def key_condition(self, alias: Optional[str] = None) -> exp.Expression:
        return exp.and_(*[
            exp.EQ(
                this=exp.column(key, table=alias),
                expression=self.dialect.placeholder(self.key_placeholder(i))
            )
            for i, key in enumerate(self.key_fields)
        ])

    def select_by_keys(self) -> str:
        select = (
            exp.select(exp.Star())
            .from_(self.dialect.table(self.table))
            .where(self.key_condition())
        )
        return self.dialect.render(select)

    def delete_by_keys(self) -> str:
        return self.dialect.render(exp.delete(self.dialect.table(self.table), where=self.key_condition()))

    def insert_prefix(self) -> str:
        """``INSERT INTO <table> ``; columns and values are appended at runtime."""
        return f"INSERT INTO {self.dialect.render(self.dialect.table(self.table))} "

    def update_prefix(self) -> str:
        """``UPDATE <table> SET ``; assignments are appended at runtime."""
        return f"UPDATE {self.dialect.render(self.dialect.table(self.table))} SET "

    def key_filter(self) -> str:
        return f" WHERE {self.dialect.render(self.key_condition())}"

    def relation_subquery(self, relation: Relation) -> exp.Subquery:
        """
        ``(SELECT <collection> FROM target AS related WHERE ...)`` for one relation.

        A junction relation joins its junction table inside the subquery and
        correlates on the junction's column pointing at the root table.
        """
        columns = self.context.columns.get(relation.target_table, ())
        select = (
            exp.select(self.dialect.aggregate(RELATED_ALIAS, columns))
            .from_(self.dialect.table(relation.target_table, alias=RELATED_ALIAS))
        )

        if relation.via is None:
            correlation = exp.EQ(
                this=exp.column(relation.target_column, table=RELATED_ALIAS),
                expression=exp.column(relation.source_column, table=self.alias)
            )
        else:
            select = select.join(
                self.dialect.table(relation.via.target_table, alias=JUNCTION_ALIAS),
                on=exp.EQ(
                    this=exp.column(relation.source_column, table=JUNCTION_ALIAS),
                    expression=exp.column(relation.target_column, table=RELATED_ALIAS)
                ),
                join_type="inner"
            )
            correlation = exp.EQ(
                this=exp.column(relation.via.target_column, table=JUNCTION_ALIAS),
                expression=exp.column(relation.via.source_column, table=self.alias)
            )

        return select.where(correlation).subquery()

    def related_select(self) -> exp.Select:
        """``SELECT root.*, (<subquery>) AS <field>, ... FROM table AS root`` without filters."""
        select = (
            exp.select(exp.Column(this=exp.Star(), table=exp.to_identifier(self.alias)))
            .from_(self.dialect.table(self.table, alias=self.alias))
        )
        for relation in self.exposed_relations:
            select = select.select(exp.alias_(self.relation_subquery(relation), relation.field_name, quoted=True))
        return select

    def get_with_relations(self) -> str:
        return self.dialect.render(self.related_select().where(self.key_condition(self.alias)))

    def list_base(self) -> str:
        return self.dialect.render(self.related_select())
