"""Relationship inference from foreign-key edges."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple

from .. import naming
from .model import NO_REFERENCES, ForeignKeyReferences, TableName

logger = logging.getLogger(__name__)


class RelationKind(Enum):
    OUTGOING = "outgoing"   # this table holds the foreign key
    INCOMING = "incoming"   # another table points at this one
    JUNCTION = "junction"   # reached through a junction table


@dataclass(frozen=True)
class Relation:
    """
    A relationship field and the rows that populate it.

    Related rows are those of ``target_table`` whose ``target_column``
    equals ``source_column`` of the table holding the field. A junction
    relation is reached ``via`` the incoming relation of its junction table:
    ``source_column`` is then the junction's column pointing at the target.
    """
    field_name: str
    kind: RelationKind
    target_table: TableName
    target_column: str
    source_column: str
    via: Optional["Relation"] = None

    @property
    def is_list(self) -> bool:
        return self.kind is not RelationKind.OUTGOING


def derive_relations(table: TableName,
                     relationships: Mapping[TableName, ForeignKeyReferences]) -> List[Relation]:
    """
    Derive relationship fields for ``table`` from already fetched edges.

    Outgoing edges give single-valued fields, incoming edges give list
    fields. A referencing table with more than one outgoing edge is treated
    as a junction: each of its other edges adds a ``<far>_via_<junction>``
    list field. Name collisions are left as they are.
    """
    references = relationships.get(table, NO_REFERENCES)
    relations = []

    for column, edge in references.outgoing.items():
        relations.append(Relation(
            field_name=naming.related_field_name(column),
            kind=RelationKind.OUTGOING,
            target_table=edge.target_table,
            target_column=edge.target_column,
            source_column=column
        ))

    for foreign_table, edge in references.incoming.items():
        incoming = Relation(
            field_name=naming.relation_name(str(foreign_table)),
            kind=RelationKind.INCOMING,
            target_table=foreign_table,
            target_column=edge.target_column,
            source_column=edge.source_column
        )
        relations.append(incoming)

        junction = relationships.get(foreign_table, NO_REFERENCES)
        if len(junction.outgoing) <= 1:
            continue

        for join_column, far_edge in junction.outgoing.items():
            if far_edge.target_table == table:
                continue
            relations.append(Relation(
                field_name=naming.junction_field_name(str(far_edge.target_table), incoming.field_name),
                kind=RelationKind.JUNCTION,
                target_table=far_edge.target_table,
                target_column=far_edge.target_column,
                source_column=join_column,
                via=incoming
            ))

    return relations


@dataclass(frozen=True)
class RelationshipSet:
    """Relations of one table plus every edge fetched to derive them."""
    relationships: Mapping[TableName, ForeignKeyReferences]
    relations: Tuple[Relation, ...]

    @property
    def consumed_columns(self) -> FrozenSet[str]:
        """Local foreign-key columns surfaced as related-object fields."""
        return frozenset(
            r.source_column for r in self.relations if r.kind is RelationKind.OUTGOING
        )

    def outgoing_for(self, column: str):
        for relation in self.relations:
            if relation.kind is RelationKind.OUTGOING and relation.source_column == column:
                return relation
        return None


class RelationshipResolver:
    """Fetches foreign-key edges for a table and the tables pointing at it."""

    def __init__(self, reader):
        self.reader = reader

    async def resolve(self, table: TableName) -> RelationshipSet:
        references = await self.reader.get_foreign_key_references(table)
        relationships: Dict[TableName, ForeignKeyReferences] = {table: references}

        # No caching: each referencing table is asked for its own edges
        for foreign_table in references.incoming:
            if foreign_table not in relationships:
                relationships[foreign_table] = await self.reader.get_foreign_key_references(foreign_table)

        relations = derive_relations(table, relationships)
        logger.debug(
            f"Resolved {len(relations)} relations for {table} "
            f"({len(references.outgoing)} outgoing, {len(references.incoming)} incoming)"
        )
        return RelationshipSet(relationships=relationships, relations=tuple(relations))
