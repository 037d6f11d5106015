"""Mint an access token for an operator console.

Tokens are normally issued by the storefront auth service; this script signs
one with the shared secret for local consoles and smoke tests.

Usage:
    python -m scripts.issue_token --user-id 1 --email admin@test.com
"""

import argparse
from datetime import timedelta

from storefront_chat.services.token_service import TokenService


def issue_token(user_id: int, email: str, role: str, minutes: int | None) -> str:
    """Sign an access token without touching Redis."""
    expires_in = timedelta(minutes=minutes) if minutes else None
    return TokenService(None).create_access_token(
        user_id=user_id,
        email=email,
        role=role,
        expires_in=expires_in,
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Issue a chat access token")
    parser.add_argument("--user-id", type=int, required=True, help="Subject user id")
    parser.add_argument("--email", required=True, help="Subject email")
    parser.add_argument("--role", default="admin", help="Role claim")
    parser.add_argument("--minutes", type=int, help="Lifetime override in minutes")
    args = parser.parse_args()

    token = issue_token(args.user_id, args.email, args.role, args.minutes)
    print(token)
    print(f"Console URL suffix: /ws?token={token}")


if __name__ == "__main__":
    main()
