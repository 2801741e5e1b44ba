"""End-to-end tests from a database catalog to generated artifacts."""

import json
import logging
import re

import pytest

from relgql import RelGQL, RelationalSchemaTransformer
from relgql.exceptions import ConnectionError, QueryError, SchemaError, ValidationError
from relgql.resolvers.generator import DATA_SOURCE_NAME, MemoryWriter
from relgql.schema.context import ConnectionInfo
from relgql.schema.readers import create_reader
from .test_database import FakeDataAPIClient, create_dog_database, create_pet_database


def postgres_dog_catalog(sql, params):
    """A PostgreSQL catalog holding a single Dog table."""
    if "pg_catalog.pg_tables" in sql:
        return [("public", "Dog", "public")]
    if "information_schema.columns" in sql:
        return [
            ("id", "integer", "NO", None, None, True),
            ("name", "character varying", "YES", None, None, False),
            ("born", "date", "YES", None, None, False),
        ]
    return []


def raising(error):
    def responder(sql, params):
        if "information_schema.columns" in sql:
            raise error
        return postgres_dog_catalog(sql, params)
    return responder


class TestDuckDBPipeline:
    """Run the whole pipeline over a DuckDB connection."""

    @pytest.fixture
    def generator(self):
        generator = RelGQL.from_duckdb(connection=create_pet_database())
        yield generator
        generator.close()

    @pytest.mark.asyncio
    async def test_generate_artifacts(self, generator):
        writer = MemoryWriter()

        resources = await generator.generate(writer=writer)

        assert len(resources) == 15
        assert "schema.graphql" in writer.artifacts
        assert "stack.json" in writer.artifacts
        assert "resolvers/Query.getDog.req.vtl" in writer.artifacts
        assert "resolvers/Mutation.createDogOwner.res.vtl" in writer.artifacts
        assert len([name for name in writer.artifacts if name.startswith("resolvers/")]) == 30

    @pytest.mark.asyncio
    async def test_stack(self, generator):
        writer = MemoryWriter()

        await generator.generate(writer=writer)
        stack = json.loads(writer.artifacts["stack.json"])

        assert set(stack["Resources"]) == {DATA_SOURCE_NAME} | {
            f"{type_name}{operation}Resolver"
            for type_name in ("Dog", "DogOwner", "Owner")
            for operation in ("Create", "Get", "Update", "Delete", "List")
        }

    @pytest.mark.asyncio
    async def test_schema_matches_templates(self, generator):
        writer = MemoryWriter()

        await generator.generate(writer=writer)
        sdl = writer.artifacts["schema.graphql"]

        assert sdl == await generator.get_schema()
        for name in writer.artifacts:
            if name.startswith("resolvers/"):
                field_name = name.split(".")[1]
                assert f"{field_name}(" in sdl

    @pytest.mark.asyncio
    async def test_validate(self, generator):
        assert await generator.validate() == []

    @pytest.mark.asyncio
    async def test_introspection_is_cached(self, generator):
        first = await generator.introspect()
        second = await generator.introspect()
        refreshed = await generator.introspect(refresh=True)

        assert first is second
        assert refreshed is not first
        assert generator.get_stats()["operations"]["list_tables"] == 2

    @pytest.mark.asyncio
    async def test_generate_requires_destination(self, generator):
        with pytest.raises(ValidationError):
            await generator.generate()

    @pytest.mark.asyncio
    async def test_skipped_table_is_logged(self, generator, caplog):
        with caplog.at_level(logging.WARNING, logger="relgql"):
            context = await generator.introspect()

        assert "Skipping table audit_log because it does not have a single PRIMARY KEY." in caplog.text
        assert len(context.warnings) == 1

    @pytest.mark.asyncio
    async def test_query_logging_uses_correlation_ids(self, caplog):
        generator = RelGQL.from_duckdb(connection=create_pet_database(), log_queries=True)
        try:
            with caplog.at_level(logging.DEBUG, logger="relgql"):
                await generator.introspect()
        finally:
            generator.close()

        uuid_pattern = r"\[[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}\]"
        assert any(re.search(uuid_pattern, r.message) for r in caplog.records)
        assert any("list_tables" in r.message for r in caplog.records)

    @pytest.mark.asyncio
    async def test_metrics_can_be_disabled(self):
        generator = RelGQL.from_duckdb(connection=create_pet_database(), enable_metrics=False)
        try:
            await generator.introspect()
            assert generator.get_stats() == {}
        finally:
            generator.close()

    @pytest.mark.asyncio
    async def test_caller_connection_stays_open(self):
        conn = create_pet_database()
        generator = RelGQL.from_duckdb(connection=conn)

        await generator.introspect()
        generator.close()

        assert conn.execute("SELECT count(*) FROM Dog").fetchone()[0] == 3


class TestPostgreSQLPipeline:
    """Run the pipeline over a PostgreSQL catalog served by a fake client."""

    def make_generator(self, responder, **connection):
        reader = create_reader(
            "aurora-postgresql",
            FakeDataAPIClient(responder),
            connection=ConnectionInfo(**connection)
        )
        return RelGQL(reader, database_name="pets")

    @pytest.mark.asyncio
    async def test_templates_use_postgres_sql(self):
        generator = self.make_generator(postgres_dog_catalog, region="us-east-1")
        writer = MemoryWriter()

        await generator.generate(writer=writer)

        request = writer.artifacts["resolvers/Query.getDog.req.vtl"]
        assert ':key0' in request
        assert '"root"."id" = :key0' in request
        sdl = writer.artifacts["schema.graphql"]
        assert "born: AWSDate" in sdl
        stack = json.loads(writer.artifacts["stack.json"])
        endpoint = stack["Resources"][DATA_SOURCE_NAME]["Properties"]["RelationalDatabaseConfig"][
            "RdsHttpEndpointConfig"]
        assert endpoint["AwsRegion"] == "us-east-1"

    @pytest.mark.asyncio
    async def test_describe_failure_is_wrapped(self):
        generator = self.make_generator(raising(Exception("boom")))

        with pytest.raises(QueryError) as exc_info:
            await generator.introspect()

        error = exc_info.value
        assert error.message == "Failed to describe table Dog"
        assert error.context["table"] == "Dog"
        assert error.context["operation"] == "describe_table"
        assert "boom" in error.context["original_error"]

    @pytest.mark.asyncio
    async def test_list_failure_is_wrapped(self):
        def responder(sql, params):
            raise Exception("boom")

        generator = self.make_generator(responder)

        with pytest.raises(QueryError) as exc_info:
            await generator.introspect()

        assert exc_info.value.message == "Failed to list tables in pets"

    @pytest.mark.asyncio
    async def test_connection_errors_propagate(self):
        class OperationalError(Exception):
            pass

        generator = self.make_generator(raising(OperationalError("connection reset")))

        with pytest.raises(ConnectionError) as exc_info:
            await generator.introspect()

        assert exc_info.value.context["table"] == "Dog"
        assert exc_info.value.context["operation"] == "describe_table"

    @pytest.mark.asyncio
    async def test_connection_error_while_listing(self):
        class OperationalError(Exception):
            pass

        def responder(sql, params):
            raise OperationalError("connection reset")

        generator = self.make_generator(responder)

        with pytest.raises(ConnectionError) as exc_info:
            await generator.introspect()

        assert exc_info.value.context["operation"] == "list_tables"
        assert "table" not in exc_info.value.context

    @pytest.mark.asyncio
    async def test_transformer_on_its_own(self):
        reader = create_reader("postgresql", FakeDataAPIClient(postgres_dog_catalog))

        context = await RelationalSchemaTransformer(reader).introspect_database_schema()

        assert [str(t) for t in context.tables] == ["Dog"]
        assert context.connection.engine == "postgresql"
        assert context.warnings == ()


class TestInvalidSchema:
    """A column named like a relationship field makes the schema invalid."""

    @pytest.fixture
    def generator(self):
        conn = create_dog_database()
        conn.execute("CREATE TABLE Owner (id INTEGER PRIMARY KEY, dog VARCHAR, dogId INTEGER REFERENCES Dog(id))")
        generator = RelGQL.from_duckdb(connection=conn)
        yield generator
        generator.close()

    @pytest.mark.asyncio
    async def test_validate_reports_collision(self, generator):
        errors = await generator.validate()

        assert any("Owner.dog" in error for error in errors)

    @pytest.mark.asyncio
    async def test_generate_refuses_invalid_schema(self, generator):
        writer = MemoryWriter()

        with pytest.raises(SchemaError) as exc_info:
            await generator.generate(writer=writer)

        assert writer.artifacts == {}
        assert exc_info.value.error_code == "SCHEMA_ERROR"
        assert any("Owner.dog" in error for error in exc_info.value.context["errors"])
