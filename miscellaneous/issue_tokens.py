#!/usr/bin/env python3
"""
Issue an access/refresh token pair for a user of the GoBus Booking Platform.

Creates the user when the email is unknown. Useful for local testing while
login is handled by the external identity provider.
"""

import asyncio
import os
import sys

# Add the project root to the Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from gobus_booking_platform.database import close_database, get_db_session, init_database
from gobus_booking_platform.models.user import User
from gobus_booking_platform.services.token_service import RefreshTokenStore


async def issue_tokens(email: str, make_admin: bool) -> None:
    """Find or create the user and print a fresh token pair."""
    await init_database()
    try:
        async with get_db_session() as db:
            result = await db.execute(select(User).where(User.email == email))
            user = result.scalar_one_or_none()

            if user is None:
                user = User(email=email, username=email.split("@")[0], is_admin=make_admin)
                db.add(user)
                await db.flush()
                print(f"✅ Created user {email}")
            elif make_admin and not user.is_admin:
                user.is_admin = True
                print(f"✅ User {email} is now an admin")

            user_id = user.id

        tokens = await RefreshTokenStore().issue(user_id)
        print(f"   ID: {user_id}")
        print(f"   Access token: {tokens.access_token}")
        print(f"   Refresh token: {tokens.refresh_token}")
        print(f"   Expires in: {tokens.expires_in}s")
    finally:
        await close_database()


def main():
    """Main function."""
    args = [arg for arg in sys.argv[1:] if arg != "--admin"]
    if len(args) != 1:
        print("Usage:")
        print("  python issue_tokens.py <email> [--admin]")
        sys.exit(1)

    asyncio.run(issue_tokens(args[0].strip(), "--admin" in sys.argv))


if __name__ == "__main__":
    main()
