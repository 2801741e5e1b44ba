"""Example usage of relgql with a small pet store schema."""

import asyncio

import duckdb
from relgql import RelGQL
from relgql.resolvers import MemoryWriter


# Create an in-memory database with sample schema
def create_sample_database():
    conn = duckdb.connect(":memory:")

    conn.execute("""
        CREATE TABLE breeds (
            breed_id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            origin TEXT
        )
    """)

    conn.execute("""
        CREATE TABLE dogs (
            dog_id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            born DATE,
            weight_kg DOUBLE,
            breed_id INTEGER REFERENCES breeds(breed_id)
        )
    """)

    conn.execute("""
        CREATE TABLE owners (
            owner_id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            email TEXT
        )
    """)

    # Junction table: dogs gain an owners_via_dog_owners field
    conn.execute("""
        CREATE TABLE dog_owners (
            dog_id INTEGER REFERENCES dogs(dog_id),
            owner_id INTEGER REFERENCES owners(owner_id),
            since DATE,
            PRIMARY KEY (dog_id, owner_id)
        )
    """)

    # No primary key, so no resolvers either
    conn.execute("""
        CREATE TABLE visits_log (
            dog_id INTEGER,
            visited_at TIMESTAMP,
            notes TEXT
        )
    """)

    return conn


async def run():
    print("🦆 Creating sample DuckDB database...")
    conn = create_sample_database()

    print("🔍 Introspecting catalog...")
    generator = RelGQL.from_duckdb(
        connection=conn,
        region="us-east-1",
        database_name="petstore"
    )

    try:
        context = await generator.introspect()
        for warning in context.warnings:
            print(f"⚠️  {warning}")

        print("\n📜 Generated schema:\n")
        print(await generator.get_schema())

        errors = await generator.validate()
        print("✅ Schema is valid" if not errors else f"❌ {errors}")

        writer = MemoryWriter()
        resources = await generator.generate(writer=writer)

        print(f"\n📊 Generated {len(resources)} resolvers:")
        for name, resource in resources.items():
            print(f"  - {name}: {resource.type_name}.{resource.field_name}")

        print("\n🎯 Request template for listDogs:\n")
        print(writer.artifacts["resolvers/Query.listDogs.req.vtl"])

        stats = generator.get_stats()
        print(f"📈 {stats['summary']['total_calls']} catalog calls")
    finally:
        generator.close()


if __name__ == "__main__":
    asyncio.run(run())
