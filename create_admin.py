import asyncio
import sys
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.future import select
from po_confirmation.authz.context import CallerContext
from po_confirmation.core.enums import UserRole
from po_confirmation.core.security import hash_password
from po_confirmation.db.routines import register_user
from po_confirmation.db.session import AsyncSessionLocal, engine, write_scope
from po_confirmation.models.user import User


async def create_admin_user(username: str, password: str) -> bool:
    try:
        async with write_scope(AsyncSessionLocal, CallerContext.system()) as db:
            res = await db.execute(select(User.id).where(User.username == username))
            if res.first():
                print(f"Error: User '{username}' already exists")
                return False

            user = await register_user(db, username, hash_password(password), role=UserRole.ADMIN)

        print(f"Admin user '{username}' created successfully")
        print(f"User ID: {user.id}")
        print(f"Public ID: {user.public_id}")
        return True

    except SQLAlchemyError as e:
        print(f"Error creating admin user: {str(e)}")
        return False
    finally:
        await engine.dispose()


def main():
    if len(sys.argv) < 3:
        print("Usage: python create_admin.py <username> <password>")
        sys.exit(1)

    username = sys.argv[1]
    password = sys.argv[2]

    if not username or not password:
        print("Error: username and password cannot be empty")
        sys.exit(1)

    success = asyncio.run(create_admin_user(username, password))
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
