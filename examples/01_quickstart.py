#!/usr/bin/env python3
"""
docquery Quickstart Example
===========================

This example demonstrates the basic usage of docquery:
1. Connect using settings from the environment
2. Insert members and roles inside a transaction
3. Query with filters, a lookup and pagination

Prerequisites:
    pip install -e .

    # Configure .env with:
    # MONGODB_URI=mongodb://localhost:27017/?replicaSet=rs0

Run:
    python examples/01_quickstart.py
"""

import asyncio

from pydantic import BaseModel, Field

from docquery import (
    Settings,
    TransactionScope,
    create_client,
    equal,
    get_database,
    insert_many_with_session,
    is_in,
    one,
    or_,
    query,
)


class Role(BaseModel):
    name: str


class Member(BaseModel):
    id: str = Field(alias="_id")
    name: str
    status: str
    role: Role | None = None


async def main() -> None:
    """Basic docquery usage example."""
    print("=" * 60)
    print("docquery Quickstart")
    print("=" * 60)

    # 1. Connect
    settings = Settings()
    client = create_client(settings)
    db = get_database(client, settings)
    print(f"\n1. Using database {settings.database_name}")

    # 2. Write both collections atomically
    async with TransactionScope(client) as scope:
        await insert_many_with_session(
            db,
            "role",
            [{"_id": "r-admin", "name": "admin"}, {"_id": "r-staff", "name": "staff"}],
            scope,
        )
        await insert_many_with_session(
            db,
            "member",
            [
                {"_id": "m-1", "name": "Ana", "status": "active", "role_id": "r-admin"},
                {"_id": "m-2", "name": "Budi", "status": "pending", "role_id": "r-staff"},
                {"_id": "m-3", "name": "Citra", "status": "active"},
            ],
            scope,
        )
    print("\n2. Inserted roles and members")

    # 3. Query
    builder = (
        query("member")
        .filter([or_([equal("status", "active"), is_in("role_id", ["r-staff"])])])
        .lookup([one("role", "role_id", "_id", "role")])
        .sort([("name", 1)])
    )
    print(f"\n3. Pipeline: {builder.build_pipeline()}")

    page = await builder.get_per_page(db, Member, page=0, size=2, with_total=True)
    print(f"   Page {page.page + 1}/{page.total_pages} ({page.total_items} matches)")
    for member in page.items:
        role = member.role.name if member.role else "-"
        print(f"   - {member.name} [{member.status}] role={role}")

    await client.close()


if __name__ == "__main__":
    asyncio.run(main())
