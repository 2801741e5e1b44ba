"""Builds a TableContext from a table's columns and relationships."""

import logging
from types import MappingProxyType
from typing import List

from .. import naming
from . import nodes
from .context import TableContext
from .model import ColumnDescription, TableName
from .relationships import RelationshipResolver, RelationshipSet
from .types import ScalarKind, column_base_type

logger = logging.getLogger(__name__)


class TypeBuilder:
    """Builds entity, input and key types for one table at a time."""

    def __init__(self, reader):
        self.reader = reader
        self.relationship_resolver = RelationshipResolver(reader)

    async def build_table_context(self, table: TableName) -> TableContext:
        """Describe ``table``, resolve its relationships and build its context."""
        columns = await self.reader.describe_table(table)
        relationship_set = await self.relationship_resolver.resolve(table)
        return self.build_from_metadata(table, columns, relationship_set)

    def build_from_metadata(self,
                            table: TableName,
                            columns: List[ColumnDescription],
                            relationship_set: RelationshipSet) -> TableContext:
        type_name = naming.type_name(str(table))
        engine = self.reader.type_map_name

        entity_fields = []
        create_fields = []
        update_fields = []
        key_input_fields = []
        key_fields = []
        key_field_types = []
        string_fields = []
        int_fields = []

        for column in columns:
            base_type = column_base_type(column, engine)
            required = column.is_primary_key or not column.is_nullable
            column_type = nodes.non_null(base_type) if required else base_type

            # Inputs always carry the raw column so inserts and updates can set it
            create_fields.append(nodes.input_value(column.name, column_type))
            update_fields.append(nodes.input_value(
                column.name,
                nodes.non_null(base_type) if column.is_primary_key else base_type
            ))

            if column.is_primary_key:
                key_fields.append(column.name)
                key_field_types.append(nodes.type_name_of(base_type))
                key_input_fields.append(nodes.input_value(column.name, base_type))

            relation = relationship_set.outgoing_for(column.name)
            if relation is not None:
                # Key columns stay visible so the entity can still be addressed
                if column.is_primary_key:
                    entity_fields.append(nodes.field(column.name, column_type))
                target_type = nodes.named_type(naming.type_name(str(relation.target_table)))
                entity_fields.append(nodes.field(
                    relation.field_name,
                    target_type if column.is_nullable else nodes.non_null(target_type)
                ))
                continue

            entity_fields.append(nodes.field(column.name, column_type))

            if not column.is_primary_key:
                kind = self.reader.map_scalar_type(column.data_type)
                if kind is ScalarKind.INT:
                    int_fields.append(column.name)
                elif kind is ScalarKind.STRING:
                    string_fields.append(column.name)

        for relation in relationship_set.relations:
            if relation.is_list:
                target_type = nodes.named_type(naming.type_name(str(relation.target_table)))
                entity_fields.append(nodes.field(relation.field_name, nodes.list_of(target_type)))

        if not key_fields:
            logger.debug(f"Table {table} has no primary key columns")

        return TableContext(
            table=table,
            type_name=type_name,
            entity_type=nodes.object_type(type_name, entity_fields),
            create_input=nodes.input_object_type(f"Create{type_name}Input", create_fields),
            update_input=nodes.input_object_type(f"Update{type_name}Input", update_fields),
            key_fields=tuple(key_fields),
            key_field_types=tuple(key_field_types),
            string_fields=tuple(string_fields),
            int_fields=tuple(int_fields),
            keys_input=nodes.input_object_type(f"{type_name}KeysInput", key_input_fields) if key_fields else None,
            relationships=MappingProxyType(dict(relationship_set.relationships)),
            columns=tuple(column.name for column in columns),
        )
