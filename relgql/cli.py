"""CLI interface for relgql."""

import asyncio
import json
import logging
from typing import Optional, Tuple

import click

from .core import RelGQL
from .exceptions import RelGQLError, ConnectionError as RelGQLConnectionError


def _configure_logging(verbose: bool, log_queries: bool) -> None:
    if verbose or log_queries:
        logging.basicConfig(
            level=logging.DEBUG if log_queries else logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )


def _report_error(e: Exception, verbose: bool) -> None:
    """Print an error with its context and suggestions, then abort."""
    if isinstance(e, RelGQLConnectionError):
        click.echo(f"\n❌ Connection Error: {e.message}", err=True)
    elif isinstance(e, RelGQLError):
        click.echo(f"\n❌ {e.error_code}: {e.message}", err=True)
        if e.context:
            click.echo(f"📍 Context: {e.context}", err=True)
    else:
        click.echo(f"\n❌ Unexpected Error: {e}", err=True)
        if verbose:
            import traceback
            click.echo("\n🔍 Stack trace:", err=True)
            click.echo(traceback.format_exc(), err=True)
        raise click.Abort()

    if e.suggestions:
        click.echo("\n💡 Suggestions:", err=True)
        for suggestion in e.suggestions:
            click.echo(f"   • {suggestion}", err=True)
    if verbose:
        click.echo(f"\n🔍 Correlation ID: {e.correlation_id}", err=True)
    raise click.Abort()


def _open(database: str, schemas: Tuple[str, ...], log_queries: bool, slow_query_ms: int, **connection_info) -> RelGQL:
    return RelGQL.from_duckdb(
        database,
        schemas=list(schemas) or None,
        log_queries=log_queries,
        slow_query_ms=slow_query_ms,
        **{k: v for k, v in connection_info.items() if v is not None}
    )


def _print_stats(generator: RelGQL) -> None:
    stats = generator.get_stats()
    if not stats:
        return
    summary = stats["summary"]
    click.echo("\n📈 Catalog calls:")
    click.echo(f"   total: {summary['total_calls']}, errors: {summary['total_errors']}")
    for operation, count in stats["operations"].items():
        click.echo(f"   {operation}: {count}")


@click.group()
def cli():
    """relgql - GraphQL schemas and resolvers from relational databases."""
    pass


@cli.command()
@click.argument('database', type=click.Path(exists=True))
@click.option('--schema', 'schemas', multiple=True, help='Schema to read tables from (repeatable)')
@click.option('--verbose', '-v', is_flag=True, help='Verbose error output')
def tables(database: str, schemas: Tuple[str, ...], verbose: bool):
    """List the tables of a DuckDB database."""
    _configure_logging(verbose, False)

    async def run(generator: RelGQL):
        found = await generator.reader.list_tables()
        click.echo(f"📊 Found {len(found)} tables:")
        for table in found:
            columns = await generator.reader.describe_table(table)
            keys = [c.name for c in columns if c.is_primary_key]
            key_info = f", key: {', '.join(keys)}" if keys else ", no primary key"
            click.echo(f"  - {table} ({len(columns)} columns{key_info})")

    generator = None
    try:
        generator = _open(database, schemas, False, 1000)
        asyncio.run(run(generator))
    except Exception as e:
        _report_error(e, verbose)
    finally:
        if generator:
            generator.close()


@cli.command()
@click.argument('database', type=click.Path(exists=True))
@click.option('--schema', 'schemas', multiple=True, help='Schema to read tables from (repeatable)')
@click.option('--validate/--no-validate', default=False, help='Validate the generated schema')
@click.option('--log-queries/--no-log-queries', default=False, help='Log all catalog queries')
@click.option('--slow-query-ms', default=1000, type=int, help='Slow catalog query threshold in milliseconds')
@click.option('--verbose', '-v', is_flag=True, help='Verbose error output')
def schema(database: str, schemas: Tuple[str, ...], validate: bool, log_queries: bool,
           slow_query_ms: int, verbose: bool):
    """Print the GraphQL schema generated for a DuckDB database."""
    _configure_logging(verbose, log_queries)

    async def run(generator: RelGQL):
        click.echo(await generator.get_schema())
        context = await generator.introspect()
        for warning in context.warnings:
            click.echo(f"⚠️  {warning}", err=True)
        if validate:
            errors = await generator.validate()
            if errors:
                click.echo("\n❌ Schema validation failed:", err=True)
                for error in errors:
                    click.echo(f"   • {error}", err=True)
                raise click.Abort()
            click.echo("✅ Schema is valid", err=True)

    generator = None
    try:
        generator = _open(database, schemas, log_queries, slow_query_ms)
        asyncio.run(run(generator))
    except click.Abort:
        raise
    except Exception as e:
        _report_error(e, verbose)
    finally:
        if generator:
            generator.close()


@cli.command()
@click.argument('database', type=click.Path(exists=True))
@click.option('--output', '-o', required=True, type=click.Path(file_okay=False), help='Output directory')
@click.option('--schema', 'schemas', multiple=True, help='Schema to read tables from (repeatable)')
@click.option('--region', default=None, help='AWS region of the database cluster')
@click.option('--cluster-arn', default=None, help='Database cluster identifier (ARN)')
@click.option('--secret-arn', default=None, help='Secret store ARN holding the credentials')
@click.option('--database-name', default=None, help='Database name used by the data source')
@click.option('--log-queries/--no-log-queries', default=False, help='Log all catalog queries')
@click.option('--slow-query-ms', default=1000, type=int, help='Slow catalog query threshold in milliseconds')
@click.option('--stats', is_flag=True, help='Print catalog call statistics')
@click.option('--json-output', is_flag=True, help='Print the generated resolver names as JSON')
@click.option('--verbose', '-v', is_flag=True, help='Verbose error output')
def generate(database: str, output: str, schemas: Tuple[str, ...], region: Optional[str],
             cluster_arn: Optional[str], secret_arn: Optional[str], database_name: Optional[str],
             log_queries: bool, slow_query_ms: int, stats: bool, json_output: bool, verbose: bool):
    """Write schema.graphql, resolver templates and stack.json for a DuckDB database."""
    _configure_logging(verbose, log_queries)

    click.echo(f"🔌 Reading catalog of: {database}")

    generator = None
    try:
        generator = _open(
            database,
            schemas,
            log_queries,
            slow_query_ms,
            region=region,
            cluster_identifier=cluster_arn,
            secret_store_arn=secret_arn,
            database_name=database_name
        )
        resources = asyncio.run(generator.generate(output))
        context = asyncio.run(generator.introspect())

        for warning in context.warnings:
            click.echo(f"⚠️  {warning}", err=True)

        if json_output:
            click.echo(json.dumps(sorted(resources), indent=2))
        else:
            click.echo(f"📊 Generated {len(resources)} resolvers for {len(context.tables)} tables")
            click.echo(f"📁 Output written to {output}")

        if stats:
            _print_stats(generator)
    except Exception as e:
        _report_error(e, verbose)
    finally:
        if generator:
            generator.close()


if __name__ == '__main__':
    cli()
