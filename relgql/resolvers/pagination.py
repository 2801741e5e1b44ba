"""
Seek pagination for list queries.

This is the cursor protocol the list templates run inside the data source,
expressed in Python: argument defaults and validation, the full statement
for one page, and how the fetched rows are split into a page.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlglot import exp

from ..exceptions import ValidationError
from ..schema.types import NUMERIC_SCALARS
from .sql import TableQueries

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 10
SORT_DIRECTIONS = ("ASC", "DESC")


@dataclass(frozen=True)
class ListArguments:
    """Arguments of a ``list<Plural>`` query."""
    limit: Optional[int] = None
    next_token: Optional[Mapping[str, Any]] = None
    token_fields: Optional[Sequence[str]] = None
    token_field_types: Optional[Sequence[str]] = None
    sort_directions: Optional[Sequence[str]] = None
    filter: Optional[str] = None

    def with_defaults(self, key_fields: Sequence[str], key_field_types: Sequence[str]) -> "ListArguments":
        """
        Fill in defaults and validate.

        Token fields default to the primary key, their types to the key
        types and every sort direction to ``ASC``. The three lists must line
        up one to one.
        """
        limit = DEFAULT_PAGE_LIMIT if self.limit is None else self.limit
        if limit < 0:
            raise ValidationError("limit must not be negative", field_name="limit", actual_value=limit)

        token_fields = tuple(self.token_fields) if self.token_fields else tuple(key_fields)
        token_field_types = tuple(self.token_field_types) if self.token_field_types else tuple(key_field_types)
        if self.sort_directions:
            sort_directions = tuple(d.upper() for d in self.sort_directions)
        else:
            sort_directions = ("ASC",) * len(token_fields)

        if not len(token_fields) == len(token_field_types) == len(sort_directions):
            raise ValidationError(
                "tokenFields, tokenFieldTypes and sortDirections must have the same length",
                field_name="tokenFields",
                context={
                    "tokenFields": list(token_fields),
                    "tokenFieldTypes": list(token_field_types),
                    "sortDirections": list(sort_directions),
                }
            )

        for direction in sort_directions:
            if direction not in SORT_DIRECTIONS:
                raise ValidationError(
                    f"Invalid sort direction '{direction}'",
                    field_name="sortDirections",
                    expected_type="ASC or DESC",
                    actual_value=direction
                )

        return ListArguments(
            limit=limit,
            next_token=dict(self.next_token) if self.next_token else None,
            token_fields=token_fields,
            token_field_types=token_field_types,
            sort_directions=sort_directions,
            filter=self.filter or None,
        )


@dataclass
class Page:
    items: List[Dict[str, Any]]
    limit: int
    next_token: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_more(self) -> bool:
        return bool(self.next_token)

    def to_dict(self) -> Dict[str, Any]:
        return {"items": self.items, "limit": self.limit, "nextToken": self.next_token}


def _seek_value(value: Any, field_type: str) -> exp.Expression:
    if field_type in NUMERIC_SCALARS:
        return exp.Literal.number(value)
    return exp.Literal.string(str(value))


def seek_conditions(queries: TableQueries, arguments: ListArguments) -> List[exp.Expression]:
    """One comparison per token field, ``>=`` ascending and ``<=`` descending."""
    if not arguments.next_token:
        return []

    conditions = []
    for token_field, field_type, direction in zip(
        arguments.token_fields, arguments.token_field_types, arguments.sort_directions
    ):
        comparison = exp.GTE if direction == "ASC" else exp.LTE
        conditions.append(comparison(
            this=exp.column(token_field, table=queries.alias),
            expression=_seek_value(arguments.next_token.get(token_field), field_type)
        ))
    return conditions


def build_list_statement(queries: TableQueries, arguments: ListArguments) -> str:
    """
    Full statement for one page, with seek values rendered as literals.

    ``arguments`` must already have its defaults applied. The statement
    fetches ``limit + 1`` rows; the extra row only signals that another page
    exists.
    """
    known_columns = set(queries.context.columns[queries.table])
    for token_field in arguments.token_fields:
        if token_field not in known_columns:
            raise ValidationError(
                f"Unknown token field '{token_field}' for {queries.table}",
                field_name="tokenFields",
                actual_value=token_field
            )

    dialect = queries.dialect
    select = queries.related_select()

    conditions = seek_conditions(queries, arguments)
    if arguments.filter:
        conditions.append(exp.Paren(this=exp.condition(arguments.filter, dialect=dialect.name)))
    if conditions:
        select = select.where(exp.and_(*conditions))

    ordering = [
        f"{dialect.render(exp.column(f, table=queries.alias))} {direction}"
        for f, direction in zip(arguments.token_fields, arguments.sort_directions)
    ]
    select = select.order_by(*ordering, dialect=dialect.name).limit(arguments.limit + 1)

    sql = dialect.render(select)
    logger.debug(f"List statement for {queries.table}: {sql}")
    return sql


def paginate(rows: Iterable[Mapping[str, Any]], arguments: ListArguments) -> Page:
    """
    Split fetched rows into a page.

    With more than ``limit`` rows, the row after the page supplies the next
    token and is dropped from the items; otherwise the token stays empty.
    """
    rows = [dict(row) for row in rows]
    limit = arguments.limit
    if len(rows) > limit:
        boundary = rows[limit]
        next_token = {f: boundary.get(f) for f in arguments.token_fields}
        return Page(items=rows[:limit], limit=limit, next_token=next_token)
    return Page(items=rows, limit=limit)


def decode_relation_fields(row: Mapping[str, Any],
                           list_fields: Sequence[str] = (),
                           single_fields: Sequence[str] = ()) -> Dict[str, Any]:
    """
    Parse aggregated relation columns back into structured values.

    List relations become lists; single-valued relations keep their first
    element and are removed when nothing joined.
    """
    decoded = dict(row)

    def parse(value):
        if isinstance(value, (str, bytes)):
            return json.loads(value)
        return list(value) if value is not None else []

    for name in list_fields:
        if name in decoded:
            decoded[name] = parse(decoded[name])

    for name in single_fields:
        if name not in decoded:
            continue
        related = parse(decoded[name])
        if related:
            decoded[name] = related[0]
        else:
            del decoded[name]

    return decoded


def page_arguments(queries: TableQueries, **kwargs) -> ListArguments:
    """``ListArguments`` for ``queries``'s table with defaults applied."""
    return ListArguments(**kwargs).with_defaults(queries.key_fields, queries.key_field_types)
