"""Small constructors for graphql-core schema AST nodes."""

from typing import Iterable, Optional, Sequence

from graphql import (
    ArgumentNode,
    DirectiveNode,
    FieldDefinitionNode,
    InputObjectTypeDefinitionNode,
    InputValueDefinitionNode,
    ListTypeNode,
    ListValueNode,
    NamedTypeNode,
    NameNode,
    NonNullTypeNode,
    ObjectTypeDefinitionNode,
    StringValueNode,
    TypeNode,
)


def name(value: str) -> NameNode:
    return NameNode(value=value)


def named_type(type_name: str) -> NamedTypeNode:
    return NamedTypeNode(name=name(type_name))


def non_null(type_node: TypeNode) -> TypeNode:
    if isinstance(type_node, NonNullTypeNode):
        return type_node
    return NonNullTypeNode(type=type_node)


def list_of(type_node: TypeNode) -> ListTypeNode:
    return ListTypeNode(type=type_node)


def input_value(field_name: str, type_node: TypeNode) -> InputValueDefinitionNode:
    return InputValueDefinitionNode(
        name=name(field_name),
        type=type_node,
        directives=()
    )


def field(field_name: str,
          type_node: TypeNode,
          arguments: Sequence[InputValueDefinitionNode] = (),
          directives: Sequence[DirectiveNode] = ()) -> FieldDefinitionNode:
    return FieldDefinitionNode(
        name=name(field_name),
        type=type_node,
        arguments=tuple(arguments),
        directives=tuple(directives)
    )


def object_type(type_name: str, fields: Iterable[FieldDefinitionNode]) -> ObjectTypeDefinitionNode:
    return ObjectTypeDefinitionNode(
        name=name(type_name),
        fields=tuple(fields),
        interfaces=(),
        directives=()
    )


def input_object_type(type_name: str,
                      fields: Iterable[InputValueDefinitionNode]) -> InputObjectTypeDefinitionNode:
    return InputObjectTypeDefinitionNode(
        name=name(type_name),
        fields=tuple(fields),
        directives=()
    )


def string_list_directive(directive_name: str, argument: str, values: Sequence[str]) -> DirectiveNode:
    """``@directive_name(argument: ["a", "b"])``"""
    return DirectiveNode(
        name=name(directive_name),
        arguments=(
            ArgumentNode(
                name=name(argument),
                value=ListValueNode(values=tuple(StringValueNode(value=v) for v in values))
            ),
        )
    )


def type_name_of(type_node: TypeNode) -> Optional[str]:
    """Innermost named type of a (possibly wrapped) type node."""
    while not isinstance(type_node, NamedTypeNode):
        type_node = getattr(type_node, "type", None)
        if type_node is None:
            return None
    return type_node.name.value
