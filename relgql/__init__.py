"""relgql - GraphQL schemas and resolver templates from relational databases."""

from .core import RelGQL, RelationalSchemaTransformer
from .schema import TableName, TemplateContext, create_reader

__version__ = "0.1.0"
__all__ = ["RelGQL", "RelationalSchemaTransformer", "TableName", "TemplateContext", "create_reader"]
