"""Resolver template generation for every table in a template context."""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, NamedTuple, Optional

from jinja2 import Environment, FileSystemLoader

from .. import naming
from ..exceptions import TemplateWriteError
from ..schema.context import TemplateContext
from ..schema.model import TableName
from ..schema.types import NUMERIC_SCALARS
from .pagination import DEFAULT_PAGE_LIMIT
from .sql import SQLDialect, TableQueries, get_dialect

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

RDS_TEMPLATE_VERSION = "2018-05-29"
DATA_SOURCE_NAME = "RelationalDatabaseDataSource"
S3_BASE_URL = "s3://${S3DeploymentBucket}/${S3DeploymentRootKey}/resolvers/${ResolverFileName}"


def vtl_string(value: Any) -> str:
    """Single-quoted VTL literal; single quotes are doubled and nothing is interpolated."""
    return "'" + str(value).replace("'", "''") + "'"


def vtl_map(mapping: Mapping[str, Any]) -> str:
    return "{" + ", ".join(f"{vtl_string(k)}: {vtl_string(v)}" for k, v in mapping.items()) + "}"


def create_environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(TEMPLATE_DIR),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["vtl"] = vtl_string
    env.filters["vtl_map"] = vtl_map
    env.filters["json"] = json.dumps
    return env


class ArtifactWriter(ABC):
    """Destination for generated files."""

    @abstractmethod
    def write(self, name: str, content: str) -> str:
        """Store ``content`` under the relative ``name`` and return its location."""


class DirectoryWriter(ArtifactWriter):
    """Writes artifacts below a local directory."""

    def __init__(self, directory):
        self.directory = Path(directory)

    def write(self, name: str, content: str) -> str:
        path = self.directory / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return str(path)


class MemoryWriter(ArtifactWriter):
    """Keeps artifacts in a dict, keyed by name."""

    def __init__(self):
        self.artifacts: Dict[str, str] = {}

    def write(self, name: str, content: str) -> str:
        self.artifacts[name] = content
        return name


def write_artifact(writer: ArtifactWriter,
                   name: str,
                   content: str,
                   table_name: Optional[str] = None,
                   operation: Optional[str] = None) -> str:
    """Write one artifact, turning I/O failures into TemplateWriteError."""
    try:
        location = writer.write(name, content)
    except OSError as e:
        raise TemplateWriteError(
            f"Could not write {name}: {e}",
            path=name,
            table_name=table_name,
            operation=operation
        ) from e
    logger.debug(f"Wrote {location}")
    return location


class Operation(NamedTuple):
    name: str
    root_type: str
    template: str


OPERATIONS = (
    Operation("Create", "Mutation", "create"),
    Operation("Get", "Query", "get"),
    Operation("Update", "Mutation", "update"),
    Operation("Delete", "Mutation", "delete"),
    Operation("List", "Query", "list"),
)


def _s3_location(file_name: str) -> Dict[str, Any]:
    return {
        "Fn::Sub": [
            S3_BASE_URL,
            {
                "S3DeploymentBucket": {"Ref": "S3DeploymentBucket"},
                "S3DeploymentRootKey": {"Ref": "S3DeploymentRootKey"},
                "ResolverFileName": file_name,
            }
        ]
    }


@dataclass(frozen=True)
class ResolverResource:
    """An AppSync resolver bound to one root field and its two template files."""
    type_name: str
    field_name: str
    request_template: str
    response_template: str
    data_source: str = DATA_SOURCE_NAME

    def to_dict(self) -> Dict[str, Any]:
        """CloudFormation ``AWS::AppSync::Resolver`` resource."""
        return {
            "Type": "AWS::AppSync::Resolver",
            "Properties": {
                "ApiId": {"Ref": "AppSyncApiId"},
                "DataSourceName": {"Fn::GetAtt": [self.data_source, "Name"]},
                "TypeName": self.type_name,
                "FieldName": self.field_name,
                "RequestMappingTemplateS3Location": _s3_location(self.request_template),
                "ResponseMappingTemplateS3Location": _s3_location(self.response_template),
            },
            "DependsOn": [self.data_source],
        }


def data_source_config(context: TemplateContext) -> Dict[str, Any]:
    """CloudFormation ``AWS::AppSync::DataSource`` for the context's connection."""
    connection = context.connection
    endpoint = {
        "AwsRegion": connection.region,
        "DbClusterIdentifier": connection.cluster_identifier,
        "DatabaseName": connection.database_name,
        "Schema": connection.database_schema,
        "AwsSecretStoreArn": connection.secret_store_arn,
    }
    return {
        "Type": "AWS::AppSync::DataSource",
        "Properties": {
            "ApiId": {"Ref": "AppSyncApiId"},
            "Name": DATA_SOURCE_NAME,
            "Type": "RELATIONAL_DATABASE",
            "RelationalDatabaseConfig": {
                "RelationalDatabaseSourceType": "RDS_HTTP_ENDPOINT",
                "RdsHttpEndpointConfig": {k: v for k, v in endpoint.items() if v is not None},
            },
        },
    }


class ResolverGenerator:
    """
    Writes request and response templates for every table in a context.

    Per table five resolvers are produced: create, get, update, delete and
    list. Each writes ``<RootType>.<fieldName>.req.vtl`` and
    ``<RootType>.<fieldName>.res.vtl`` through the writer. A failed write
    aborts generation.
    """

    def __init__(self,
                 context: TemplateContext,
                 writer: ArtifactWriter,
                 directory: str = "",
                 dialect: Optional[SQLDialect] = None):
        self.context = context
        self.writer = writer
        self.directory = directory
        self.dialect = dialect or get_dialect(context.connection.engine or "postgresql")
        self.environment = create_environment()

    def create_resolvers(self) -> Dict[str, ResolverResource]:
        """Generate all templates and return the resolver resources by logical name."""
        resources: Dict[str, ResolverResource] = {}
        for table in self.context.tables:
            type_name = self.context.type_names[table]
            queries = TableQueries(self.context, table, self.dialect)
            for operation in OPERATIONS:
                resources[f"{type_name}{operation.name}Resolver"] = self._make_resolver(
                    operation, table, type_name, queries
                )

        logger.info(f"Generated {len(resources)} resolvers for {len(self.context.tables)} tables")
        return resources

    def _make_resolver(self,
                       operation: Operation,
                       table: TableName,
                       type_name: str,
                       queries: TableQueries) -> ResolverResource:
        if operation.template == "list":
            field_name = naming.list_field_name(type_name)
        else:
            field_name = f"{operation.template}{type_name}"

        variables = {
            "field_name": field_name,
            "type_name": type_name,
            "table": str(table),
            "input_name": f"{field_name}Input",
            "queries": queries,
            "version": RDS_TEMPLATE_VERSION,
            "default_limit": DEFAULT_PAGE_LIMIT,
            "numeric_types": sorted(NUMERIC_SCALARS),
        }

        request_file = f"{operation.root_type}.{field_name}.req.vtl"
        response_file = f"{operation.root_type}.{field_name}.res.vtl"
        for file_name, template_name in (
            (request_file, f"{operation.template}.req.vtl.j2"),
            (response_file, f"{operation.template}.res.vtl.j2"),
        ):
            content = self.environment.get_template(template_name).render(**variables)
            self._write(file_name, content, table, operation)

        return ResolverResource(
            type_name=operation.root_type,
            field_name=field_name,
            request_template=request_file,
            response_template=response_file,
        )

    def _write(self, file_name: str, content: str, table: TableName, operation: Operation) -> str:
        name = f"{self.directory}/{file_name}" if self.directory else file_name
        return write_artifact(self.writer, name, content, table_name=str(table), operation=operation.template)
