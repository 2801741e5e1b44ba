"""Tests for resolver template generation."""

import asyncio
import dataclasses

import pytest

from relgql.exceptions import TemplateWriteError
from relgql.resolvers.generator import (
    DATA_SOURCE_NAME,
    OPERATIONS,
    RDS_TEMPLATE_VERSION,
    ArtifactWriter,
    DirectoryWriter,
    MemoryWriter,
    ResolverGenerator,
    create_environment,
    data_source_config,
    vtl_map,
    vtl_string,
)
from relgql.resolvers.sql import DuckDBDialect, MySQLDialect, PostgreSQLDialect
from relgql.schema.context import ConnectionInfo
from .test_database import create_dog_database, create_owner_database, create_pet_database, introspect_connection


class FailingWriter(ArtifactWriter):
    def write(self, name, content):
        raise PermissionError(f"Permission denied: '{name}'")


@pytest.fixture
def dog_context():
    return asyncio.run(introspect_connection(create_dog_database()))


@pytest.fixture
def owner_context():
    return asyncio.run(introspect_connection(create_owner_database()))


@pytest.fixture
def dog_templates(dog_context):
    writer = MemoryWriter()
    ResolverGenerator(dog_context, writer, dialect=PostgreSQLDialect()).create_resolvers()
    return writer.artifacts


class TestVTLFilters:
    """Test the VTL literal helpers."""

    def test_string(self):
        assert vtl_string("Dog") == "'Dog'"
        assert vtl_string("it's") == "'it''s'"
        assert vtl_string('SELECT * FROM "Dog"') == "'SELECT * FROM \"Dog\"'"

    def test_map(self):
        assert vtl_map({"id": '"id"', "name": '"name"'}) == "{'id': '\"id\"', 'name': '\"name\"'}"
        assert vtl_map({}) == "{}"

    def test_markup_is_not_escaped(self):
        env = create_environment()

        rendered = env.from_string("{{ sql | vtl }} {{ sql }}").render(sql='"a" < 1 & "b" > 2')

        assert rendered == "'\"a\" < 1 & \"b\" > 2' \"a\" < 1 & \"b\" > 2"
        assert "&lt;" not in rendered


class TestResolverGenerator:
    """Test the generated files and resources."""

    def test_file_names(self, dog_templates):
        assert sorted(dog_templates) == sorted([
            "Mutation.createDog.req.vtl",
            "Mutation.createDog.res.vtl",
            "Query.getDog.req.vtl",
            "Query.getDog.res.vtl",
            "Mutation.updateDog.req.vtl",
            "Mutation.updateDog.res.vtl",
            "Mutation.deleteDog.req.vtl",
            "Mutation.deleteDog.res.vtl",
            "Query.listDogs.req.vtl",
            "Query.listDogs.res.vtl",
        ])

    def test_ten_files_per_table(self):
        context = asyncio.run(introspect_connection(create_pet_database()))
        writer = MemoryWriter()

        resources = ResolverGenerator(context, writer).create_resolvers()

        assert len(writer.artifacts) == 10 * len(context.tables) == 30
        assert len(resources) == 5 * len(context.tables)

    def test_resource_names(self, dog_context):
        resources = ResolverGenerator(dog_context, MemoryWriter()).create_resolvers()

        assert list(resources) == [
            "DogCreateResolver",
            "DogGetResolver",
            "DogUpdateResolver",
            "DogDeleteResolver",
            "DogListResolver",
        ]
        assert resources["DogListResolver"].type_name == "Query"
        assert resources["DogListResolver"].field_name == "listDogs"
        assert resources["DogCreateResolver"].type_name == "Mutation"

    def test_resource_to_dict(self, dog_context):
        resources = ResolverGenerator(dog_context, MemoryWriter(), directory="resolvers").create_resolvers()

        resource = resources["DogGetResolver"].to_dict()

        assert resource["Type"] == "AWS::AppSync::Resolver"
        assert resource["DependsOn"] == [DATA_SOURCE_NAME]
        properties = resource["Properties"]
        assert properties["TypeName"] == "Query"
        assert properties["FieldName"] == "getDog"
        assert properties["DataSourceName"] == {"Fn::GetAtt": [DATA_SOURCE_NAME, "Name"]}
        request = properties["RequestMappingTemplateS3Location"]["Fn::Sub"]
        assert request[0].endswith("/resolvers/${ResolverFileName}")
        assert request[1]["ResolverFileName"] == "Query.getDog.req.vtl"
        response = properties["ResponseMappingTemplateS3Location"]["Fn::Sub"]
        assert response[1]["ResolverFileName"] == "Query.getDog.res.vtl"

    def test_directory_prefix(self, dog_context):
        writer = MemoryWriter()

        ResolverGenerator(dog_context, writer, directory="resolvers").create_resolvers()

        assert all(name.startswith("resolvers/") for name in writer.artifacts)

    def test_directory_writer(self, dog_context, tmp_path):
        ResolverGenerator(dog_context, DirectoryWriter(tmp_path), directory="resolvers").create_resolvers()

        assert (tmp_path / "resolvers" / "Query.getDog.req.vtl").is_file()
        assert len(list((tmp_path / "resolvers").iterdir())) == 10

    def test_write_failure(self, dog_context):
        with pytest.raises(TemplateWriteError) as exc_info:
            ResolverGenerator(dog_context, FailingWriter()).create_resolvers()

        error = exc_info.value
        assert error.context["path"] == "Mutation.createDog.req.vtl"
        assert error.context["table"] == "Dog"
        assert error.context["operation"] == OPERATIONS[0].template

    def test_dialect_follows_engine(self, dog_context):
        generator = ResolverGenerator(dog_context, MemoryWriter())

        assert isinstance(generator.dialect, DuckDBDialect)

    def test_output_is_deterministic(self, dog_context):
        first, second = MemoryWriter(), MemoryWriter()

        ResolverGenerator(dog_context, first).create_resolvers()
        ResolverGenerator(dog_context, second).create_resolvers()

        assert first.artifacts == second.artifacts


class TestTemplateContent:
    """Test what the rendered templates contain."""

    def test_no_template_syntax_left(self, dog_templates):
        for content in dog_templates.values():
            assert "{{" not in content
            assert "{%" not in content

    def test_requests_are_versioned(self, dog_templates):
        for name, content in dog_templates.items():
            if name.endswith(".req.vtl"):
                assert f'"version": "{RDS_TEMPLATE_VERSION}"' in content
                assert '"variableMap": $util.toJson($variableMap)' in content

    def test_create_request(self, dog_templates):
        content = dog_templates["Mutation.createDog.req.vtl"]

        assert "#set($columns = {'id': '\"id\"', 'name': '\"name\"'})" in content
        assert "#set($bind = ':')" in content
        assert "#set($input = $ctx.args.createDogInput)" in content
        assert "#set($insertPrefix = 'INSERT INTO \"Dog\" ')" in content
        assert "#set($selectStatement = 'SELECT * FROM \"Dog\" WHERE \"id\" = :key0')" in content
        assert "$util.qr($variableMap.put(\"key0\", $input.get('id')))" in content
        assert '"ValidationError"' in content
        assert "$util.toJson($insertStatement)" in content

    @pytest.mark.parametrize("dialect", [PostgreSQLDialect(), MySQLDialect(), DuckDBDialect()])
    def test_named_parameters_for_every_dialect(self, dog_context, dialect):
        writer = MemoryWriter()
        ResolverGenerator(dog_context, writer, dialect=dialect).create_resolvers()

        create = writer.artifacts["Mutation.createDog.req.vtl"]
        assert "#set($bind = ':')" in create
        assert "#set($valueList = \"$valueList${bind}c$foreach.count\")" in create
        assert "= :key0')" in create
        assert not any("%(" in content for content in writer.artifacts.values())

    def test_update_request(self, dog_templates):
        content = dog_templates["Mutation.updateDog.req.vtl"]

        assert "#set($input = $ctx.args.updateDogInput)" in content
        assert "#set($updatePrefix = 'UPDATE \"Dog\" SET ')" in content
        assert "#set($keyFilter = ' WHERE \"id\" = :key0')" in content

    def test_get_and_delete_requests(self, dog_templates):
        get = dog_templates["Query.getDog.req.vtl"]
        delete = dog_templates["Mutation.deleteDog.req.vtl"]

        assert "$util.qr($variableMap.put(\"key0\", $ctx.args.get('id')))" in get
        assert "#set($deleteStatement = 'DELETE FROM \"Dog\" WHERE \"id\" = :key0')" in delete
        assert delete.index("$util.toJson($selectStatement)") < delete.index("$util.toJson($deleteStatement)")

    def test_responses(self, dog_templates):
        assert "[1][0]" in dog_templates["Mutation.createDog.res.vtl"]
        assert "[1][0]" in dog_templates["Mutation.updateDog.res.vtl"]
        assert "[0][0]" in dog_templates["Mutation.deleteDog.res.vtl"]
        assert "#return" in dog_templates["Query.getDog.res.vtl"]

    def test_list_request(self, dog_templates):
        content = dog_templates["Query.listDogs.req.vtl"]

        assert "$util.defaultIfNull($ctx.args.limit, 10)" in content
        assert '$util.defaultIfNull($ctx.args.tokenFields, ["id"])' in content
        assert '$util.defaultIfNull($ctx.args.tokenFieldTypes, ["Int"])' in content
        assert '#set($numericTypes = ["Float", "Int"])' in content
        assert "#set($sqlStatement = 'SELECT \"root\".* FROM \"Dog\" AS \"root\"')" in content
        assert "#set($columns = {'id': '\"root\".\"id\"', 'name': '\"root\".\"name\"'})" in content
        assert "GROUP BY" not in content
        assert "LIMIT $fetchLimit" in content
        assert "${bind}token$idx" in content

    def test_list_response(self, dog_templates):
        content = dog_templates["Query.listDogs.res.vtl"]

        assert '"nextToken": $util.toJson($nextToken)' in content
        assert "$util.defaultIfNull($ctx.args.limit, 10)" in content

    def test_relation_decoding(self, owner_context):
        writer = MemoryWriter()
        ResolverGenerator(owner_context, writer, dialect=PostgreSQLDialect()).create_resolvers()

        owner = writer.artifacts["Query.getOwner.res.vtl"]
        dog = writer.artifacts["Query.getDog.res.vtl"]

        assert '#foreach($relationField in ["dog"])' in owner
        assert "$util.qr($result.remove($relationField))" in owner
        assert '#foreach($relationField in ["owners"])' in dog
        assert "$util.qr($result.remove($relationField))" not in dog

    def test_quotes_in_sql_are_doubled(self, owner_context):
        writer = MemoryWriter()
        ResolverGenerator(owner_context, writer, dialect=PostgreSQLDialect()).create_resolvers()

        content = writer.artifacts["Query.getOwner.req.vtl"]

        assert ", ''[]'')" in content


class TestDataSourceConfig:
    """Test the data source resource."""

    def test_connection_details(self, dog_context):
        context = dataclasses.replace(dog_context, connection=ConnectionInfo(
            engine="aurora-postgresql",
            region="us-east-1",
            cluster_identifier="arn:aws:rds:us-east-1:123:cluster:pets",
            secret_store_arn="arn:aws:secretsmanager:us-east-1:123:secret:pets",
            database_name="pets"
        ))

        config = data_source_config(context)

        assert config["Type"] == "AWS::AppSync::DataSource"
        properties = config["Properties"]
        assert properties["Name"] == DATA_SOURCE_NAME
        assert properties["Type"] == "RELATIONAL_DATABASE"
        endpoint = properties["RelationalDatabaseConfig"]["RdsHttpEndpointConfig"]
        assert endpoint["AwsRegion"] == "us-east-1"
        assert endpoint["DbClusterIdentifier"] == "arn:aws:rds:us-east-1:123:cluster:pets"
        assert endpoint["DatabaseName"] == "pets"
        assert endpoint["AwsSecretStoreArn"].endswith(":secret:pets")

    def test_missing_values_are_omitted(self, dog_context):
        endpoint = data_source_config(dog_context)["Properties"]["RelationalDatabaseConfig"]["RdsHttpEndpointConfig"]

        assert "AwsRegion" not in endpoint
        assert "DbClusterIdentifier" not in endpoint
