# scripts/create_admin.py
"""
Create (or reuse) an acting user and print an access token for it.

    python -m scripts.create_admin --username admin --role admin
"""
import argparse
import asyncio

from sqlalchemy.future import select

from retail_backend.core.db import AsyncSessionLocal, init_models
from retail_backend.core.security import create_access_token
from retail_backend.models.user_models import User


async def seed_user(username: str, name: str, phone: str | None, role: str) -> str:
    await init_models()
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(User).where(User.username == username))
        user = result.scalars().first()
        if not user:
            user = User(username=username, name=name, phone=phone, role=role)
            db.add(user)
            await db.commit()
            await db.refresh(user)
            print(f"Created {role} '{username}' (id={user.id})")
        else:
            print(f"User '{username}' already exists (id={user.id}, role={user.role})")

        return create_access_token({"sub": user.username}, user.token_version)


def main():
    parser = argparse.ArgumentParser(description="Seed a user and print an access token")
    parser.add_argument("--username", default="admin")
    parser.add_argument("--name", default="Administrator")
    parser.add_argument("--phone", default=None)
    parser.add_argument("--role", default="admin", choices=["admin", "salesman"])
    args = parser.parse_args()

    token = asyncio.run(seed_user(args.username, args.name, args.phone, args.role))
    print(token)


if __name__ == "__main__":
    main()
