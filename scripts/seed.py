#!/usr/bin/env python3
"""
Seed script: creates a demo tenant, an admin user with an API key, and
GST 18% / compound cess / flat stamp duty taxes.
Run after migrations: python scripts/seed.py
"""

import asyncio
import os
import sys
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from taxdesk.auth.middleware import Role, Scope, hash_api_key
from taxdesk.database import async_session_maker
from taxdesk.models import Tax, Tenant, User


API_KEY = "sk_demo_taxdesk_12345"  # Demo API key - print this for user

TAXES = [
    {
        "tax_code": "GST-18",
        "name": "GST 18%",
        "description": "Goods and Services Tax at 18% rate",
        "rate": Decimal("18"),
        "rate_type": "percentage",
        "jurisdiction": "Federal",
        "tax_category": "GST",
        "components": [
            {"name": "CGST", "rate": 9, "description": "Central GST"},
            {"name": "SGST", "rate": 9, "description": "State GST"},
        ],
        "priority": 1,
        "is_compound": False,
    },
    {
        "tax_code": "CESS-1",
        "name": "Compensation Cess 1%",
        "rate": Decimal("1"),
        "rate_type": "percentage",
        "tax_category": "Cess",
        "priority": 0,
        "is_compound": True,
        "configuration": {"exempt_threshold": 500},
    },
    {
        "tax_code": "STAMP-10",
        "name": "Stamp Duty",
        "rate": Decimal("10"),
        "rate_type": "fixed",
        "applicable_on": "purchase",
        "priority": 5,
    },
]


async def seed():
    now = datetime.now(timezone.utc)
    api_key_hash = hash_api_key(API_KEY)

    async with async_session_maker() as session:
        result = await session.execute(select(User).where(User.api_key_hash == api_key_hash))
        user = result.scalar_one_or_none()
        if user:
            print("Admin user already exists, using existing tenant.")
            tenant_id = str(user.tenant_id)
            user_id = str(user.user_id)
        else:
            tenant_id = str(uuid4())
            user_id = str(uuid4())
            session.add(Tenant(tenant_id=tenant_id, name="Demo Tenant", created_at=now))
            await session.flush()
            session.add(
                User(
                    user_id=user_id,
                    tenant_id=tenant_id,
                    email="admin@demo.example",
                    role=Role.ADMIN.value,
                    scopes=[Scope.TAXES.value],
                    api_key_hash=api_key_hash,
                    created_at=now,
                )
            )
            await session.commit()

        for data in TAXES:
            result = await session.execute(
                select(Tax).where(Tax.tenant_id == tenant_id, Tax.tax_code == data["tax_code"])
            )
            if result.scalar_one_or_none():
                print(f"Tax {data['tax_code']} already exists.")
                continue
            session.add(
                Tax(
                    tax_id=str(uuid4()),
                    tenant_id=tenant_id,
                    created_by=user_id,
                    updated_by=user_id,
                    created_at=now,
                    updated_at=now,
                    **data,
                )
            )
        await session.commit()

    print("Seed complete!")
    print(f"API Key: {API_KEY}")
    print(f"Use: Authorization: Bearer {API_KEY}")
    print("Example: curl http://localhost:8000/v1/taxes/active/list \\")
    print('  -H "Authorization: Bearer ' + API_KEY + '"')


if __name__ == "__main__":
    asyncio.run(seed())
