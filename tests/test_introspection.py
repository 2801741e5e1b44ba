"""Tests for DuckDB catalog introspection and table context building."""

import pytest
from graphql import print_ast

from relgql.exceptions import QueryError
from relgql.schema.builder import TypeBuilder
from relgql.schema.clients import DuckDBClient
from relgql.schema.model import TableName
from relgql.schema.readers import DuckDBDatabaseReader
from .test_database import create_pet_database, create_type_database


def field_types(object_type):
    return {f.name.value: print_ast(f.type) for f in object_type.fields}


class TestTableName:
    """Test table references."""

    def test_parse(self):
        assert TableName.parse("Dog") == TableName("Dog")
        assert TableName.parse("sales.Order") == TableName("Order", schema="sales")

    def test_str(self):
        assert str(TableName("Dog")) == "Dog"
        assert str(TableName("Order", schema="sales")) == "sales.Order"

    def test_hashable(self):
        assert len({TableName("Dog"), TableName("Dog"), TableName("Dog", "main")}) == 2


class TestDuckDBReader:
    """Test catalog reads against a DuckDB database."""

    @pytest.fixture
    def reader(self):
        reader = DuckDBDatabaseReader(DuckDBClient(create_pet_database()))
        yield reader
        reader.client.close()

    @pytest.mark.asyncio
    async def test_list_tables(self, reader):
        tables = await reader.list_tables()

        assert tables == [
            TableName("Dog"),
            TableName("DogOwner"),
            TableName("Owner"),
            TableName("audit_log"),
        ]

    @pytest.mark.asyncio
    async def test_list_tables_in_configured_schema(self):
        conn = create_pet_database()
        conn.execute("CREATE SCHEMA sales")
        conn.execute("CREATE TABLE sales.Invoice (id INTEGER PRIMARY KEY, total DOUBLE)")
        reader = DuckDBDatabaseReader(DuckDBClient(conn), schemas=["sales"])

        tables = await reader.list_tables()

        assert tables == [TableName("Invoice", schema="sales")]

    @pytest.mark.asyncio
    async def test_describe_table(self, reader):
        columns = await reader.describe_table(TableName("Owner"))

        assert [c.name for c in columns] == ["id", "name", "dogId"]
        assert [c.is_primary_key for c in columns] == [True, False, False]
        assert not columns[0].is_nullable
        assert columns[1].is_nullable
        assert columns[0].data_type == "INTEGER"

    @pytest.mark.asyncio
    async def test_describe_composite_key(self, reader):
        columns = await reader.describe_table(TableName("DogOwner"))

        assert [c.name for c in columns if c.is_primary_key] == ["dogId", "ownerId"]

    @pytest.mark.asyncio
    async def test_describe_types(self):
        reader = DuckDBDatabaseReader(DuckDBClient(create_type_database()))

        columns = {c.name: c for c in await reader.describe_table(TableName("measurements"))}

        assert columns["price"].data_type == "DECIMAL"
        assert columns["readings"].data_type == "ARRAY"
        assert columns["readings"].array_type == "INTEGER"
        assert columns["tags"].array_type == "VARCHAR"
        assert not columns["label"].is_nullable

    @pytest.mark.asyncio
    async def test_describe_missing_table(self, reader):
        with pytest.raises(QueryError) as exc_info:
            await reader.describe_table(TableName("Cat"))

        assert "Cat" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_foreign_key_references(self, reader):
        references = await reader.get_foreign_key_references(TableName("DogOwner"))

        assert set(references.outgoing) == {"dogId", "ownerId"}
        assert references.outgoing["dogId"].target_table == TableName("Dog")
        assert references.outgoing["ownerId"].target_table == TableName("Owner")
        assert references.outgoing["ownerId"].target_column == "id"
        assert dict(references.incoming) == {}

    @pytest.mark.asyncio
    async def test_incoming_references(self, reader):
        references = await reader.get_foreign_key_references(TableName("Dog"))

        assert dict(references.outgoing) == {}
        assert set(references.incoming) == {TableName("Owner"), TableName("DogOwner")}
        edge = references.incoming[TableName("Owner")]
        assert edge.source_column == "id"
        assert edge.target_column == "dogId"

    @pytest.mark.asyncio
    async def test_list_databases(self, reader):
        assert await reader.list_databases() == ["memory"]

    @pytest.mark.asyncio
    async def test_list_schemas(self, reader):
        schemas = await reader.list_schemas()

        assert "main" in schemas
        assert "information_schema" not in schemas


class TestTypeBuilder:
    """Test table contexts built from the catalog."""

    @pytest.fixture
    def builder(self):
        reader = DuckDBDatabaseReader(DuckDBClient(create_pet_database()))
        yield TypeBuilder(reader)
        reader.client.close()

    @pytest.mark.asyncio
    async def test_plain_table(self):
        reader = DuckDBDatabaseReader(DuckDBClient(create_type_database()))
        context = await TypeBuilder(reader).build_table_context(TableName("measurements"))

        assert context.type_name == "Measurements"
        assert context.key_fields == ("id",)
        assert context.key_field_types == ("Int",)
        assert field_types(context.entity_type) == {
            "id": "Int!",
            "label": "String!",
            "ratio": "Float",
            "price": "Float",
            "active": "Boolean",
            "taken_on": "AWSDate",
            "taken_at": "AWSTimestamp",
            "payload": "AWSJSON",
            "reference": "ID",
            "readings": "[Int]",
            "tags": "[String]",
        }
        assert context.string_fields == ("label",)
        assert context.int_fields == ()
        assert context.columns[0] == "id"

    @pytest.mark.asyncio
    async def test_input_types(self, builder):
        context = await builder.build_table_context(TableName("Owner"))

        assert context.create_input.name.value == "CreateOwnerInput"
        assert field_types_of_input(context.create_input) == {"id": "Int!", "name": "String", "dogId": "Int"}
        assert context.update_input.name.value == "UpdateOwnerInput"
        assert field_types_of_input(context.update_input) == {"id": "Int!", "name": "String", "dogId": "Int"}
        assert context.keys_input.name.value == "OwnerKeysInput"
        assert field_types_of_input(context.keys_input) == {"id": "Int"}

    @pytest.mark.asyncio
    async def test_foreign_key_becomes_object_field(self, builder):
        context = await builder.build_table_context(TableName("Owner"))

        fields = field_types(context.entity_type)
        assert fields["dog"] == "Dog"
        assert "dogId" not in fields
        assert fields["dog_owners"] == "[DogOwner]"
        assert fields["dogs_via_dog_owners"] == "[Dog]"

    @pytest.mark.asyncio
    async def test_incoming_and_junction_fields(self, builder):
        context = await builder.build_table_context(TableName("Dog"))

        fields = field_types(context.entity_type)
        assert fields["owners"] == "[Owner]"
        assert fields["dog_owners"] == "[DogOwner]"
        assert fields["owners_via_dog_owners"] == "[Owner]"
        assert TableName("DogOwner") in context.relationships
        assert TableName("Owner") in context.relationships

    @pytest.mark.asyncio
    async def test_key_foreign_key_keeps_scalar(self, builder):
        context = await builder.build_table_context(TableName("DogOwner"))

        fields = field_types(context.entity_type)
        assert fields["dogId"] == "Int!"
        assert fields["dog"] == "Dog!"
        assert fields["ownerId"] == "Int!"
        assert fields["owner"] == "Owner!"
        assert fields["since"] == "AWSDate"
        assert context.key_fields == ("dogId", "ownerId")

    @pytest.mark.asyncio
    async def test_table_without_primary_key(self, builder):
        context = await builder.build_table_context(TableName("audit_log"))

        assert not context.has_primary_key
        assert context.keys_input is None
        assert context.string_fields == ("event",)


def field_types_of_input(input_type):
    return {f.name.value: print_ast(f.type) for f in input_type.fields}
