"""Folds table contexts into a single GraphQL schema document."""

import logging
from typing import List, Sequence

from graphql import (
    DocumentNode,
    GraphQLError,
    OperationType,
    OperationTypeDefinitionNode,
    SchemaDefinitionNode,
    build_ast_schema,
    parse,
    print_ast,
    validate_schema,
)

from .. import naming
from . import nodes
from .context import TableContext
from .types import CUSTOM_SCALARS

logger = logging.getLogger(__name__)

BUILTIN_SCALARS = frozenset({"Int", "Float", "String", "Boolean", "ID"})

SUBSCRIBE_DIRECTIVE = "aws_subscribe"

# Declarations the data source runtime provides implicitly
RUNTIME_DECLARATIONS = "\n".join(
    [f"scalar {scalar}" for scalar in CUSTOM_SCALARS]
    + [f"directive @{SUBSCRIBE_DIRECTIVE}(mutations: [String]) on FIELD_DEFINITION"]
)


class SchemaAssembler:
    """
    Builds the schema document for all tables that have a primary key.

    Per table the document holds, in order: the keys type, the connection
    type, the create input, the entity type, the update input and the keys
    input. Mutation, Query and Subscription root types and the schema
    definition follow.
    """

    def __init__(self):
        self.warnings: List[str] = []

    def assemble(self, table_contexts: Sequence[TableContext]) -> DocumentNode:
        retained = [t for t in table_contexts if t.has_primary_key]
        known_types = BUILTIN_SCALARS | set(CUSTOM_SCALARS) | {t.type_name for t in retained}

        definitions = []
        mutation_fields = []
        query_fields = []
        subscription_fields = []

        for table_context in retained:
            type_name = table_context.type_name
            key_inputs = table_context.keys_input.fields

            keys_type = nodes.object_type(
                f"{type_name}Keys",
                [nodes.field(f.name.value, f.type) for f in key_inputs]
            )
            connection_type = nodes.object_type(f"{type_name}Connection", [
                nodes.field("items", nodes.list_of(nodes.named_type(type_name))),
                nodes.field("limit", nodes.named_type("Int")),
                nodes.field("nextToken", nodes.named_type(f"{type_name}Keys")),
            ])
            definitions.extend([
                keys_type,
                connection_type,
                table_context.create_input,
                self._prune_entity(table_context, known_types),
                table_context.update_input,
                table_context.keys_input,
            ])

            key_arguments = [nodes.input_value(f.name.value, nodes.non_null(f.type)) for f in key_inputs]
            entity = nodes.named_type(type_name)
            create_field = f"create{type_name}"
            update_field = f"update{type_name}"

            mutation_fields.extend([
                nodes.field(f"delete{type_name}", entity, key_arguments),
                nodes.field(create_field, entity, [
                    nodes.input_value(
                        f"{create_field}Input",
                        nodes.non_null(nodes.named_type(f"Create{type_name}Input"))
                    )
                ]),
                nodes.field(update_field, entity, [
                    nodes.input_value(
                        f"{update_field}Input",
                        nodes.non_null(nodes.named_type(f"Update{type_name}Input"))
                    )
                ]),
            ])

            query_fields.extend([
                nodes.field(f"get{type_name}", entity, key_arguments),
                nodes.field(
                    naming.list_field_name(type_name),
                    nodes.named_type(f"{type_name}Connection"),
                    list_arguments(type_name)
                ),
            ])

            subscription_fields.append(nodes.field(
                f"onCreate{type_name}",
                entity,
                directives=[nodes.string_list_directive(SUBSCRIBE_DIRECTIVE, "mutations", [create_field])]
            ))

        if retained:
            definitions.extend([
                nodes.object_type("Mutation", mutation_fields),
                nodes.object_type("Query", query_fields),
                nodes.object_type("Subscription", subscription_fields),
                SchemaDefinitionNode(
                    directives=(),
                    operation_types=(
                        _operation(OperationType.QUERY, "Query"),
                        _operation(OperationType.MUTATION, "Mutation"),
                        _operation(OperationType.SUBSCRIPTION, "Subscription"),
                    )
                ),
            ])

        logger.info(f"Assembled schema with {len(retained)} entity types")
        return DocumentNode(definitions=tuple(definitions))

    def _prune_entity(self, table_context: TableContext, known_types):
        """Drop relationship fields whose target table is not part of the schema."""
        entity = table_context.entity_type
        kept = []
        for field_node in entity.fields:
            target = nodes.type_name_of(field_node.type)
            if target in known_types:
                kept.append(field_node)
                continue
            message = (
                f"Dropping field {table_context.type_name}.{field_node.name.value}: "
                f"type {target} is not part of the schema"
            )
            logger.warning(message)
            self.warnings.append(message)

        if len(kept) == len(entity.fields):
            return entity
        return nodes.object_type(entity.name.value, kept)


def list_arguments(type_name: str):
    """Arguments of the paginated list query."""
    string_list = nodes.list_of(nodes.named_type("String"))
    return [
        nodes.input_value("limit", nodes.named_type("Int")),
        nodes.input_value("nextToken", nodes.named_type(f"{type_name}KeysInput")),
        nodes.input_value("tokenFields", string_list),
        nodes.input_value("tokenFieldTypes", string_list),
        nodes.input_value("sortDirections", string_list),
        nodes.input_value("filter", nodes.named_type("String")),
    ]


def _operation(operation: OperationType, type_name: str) -> OperationTypeDefinitionNode:
    return OperationTypeDefinitionNode(operation=operation, type=nodes.named_type(type_name))


def print_schema(document: DocumentNode) -> str:
    """Render the document as SDL."""
    return print_ast(document)


def validate_document(document: DocumentNode) -> List[str]:
    """
    Build the document into a schema and return validation messages.

    The AppSync scalars and the subscription directive are declared first,
    since the runtime provides them. An empty document is trivially valid.
    """
    if not document.definitions:
        return []

    declarations = parse(RUNTIME_DECLARATIONS)
    full_document = DocumentNode(definitions=tuple(declarations.definitions) + tuple(document.definitions))
    try:
        schema = build_ast_schema(full_document)
    except (GraphQLError, TypeError) as e:
        return [str(e)]
    return [error.message for error in validate_schema(schema)]
