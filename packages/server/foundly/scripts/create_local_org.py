"""
Script to create a local user and an organization for development.

Prints the organization's join code so other local users can join it.
"""

import argparse
import asyncio
import sys
from typing import Optional

from pydantic import ValidationError

from foundly.core.config import get_settings
from foundly.core.database import init_db
from foundly.core.errors import FoundlyError
from foundly.core.logging import configure_logging
from foundly.core.store import DocumentStore, get_store
from foundly.services import organizations as org_service
from foundly.services import users as user_service
from foundly_shared.schemas.organizations import OrgCreateRequest
from foundly_shared.schemas.users import UserCreateRequest


async def create_local_org(
    store: DocumentStore,
    email: str,
    name: str,
    org_name: str,
    join_code: Optional[str] = None,
) -> str:
    """Ensure the user exists, create the org, and return its join code."""
    # 1. Ensure user exists
    req = UserCreateRequest(email=email.strip(), name=name)
    user = await store.find_user_by_email(user_service.normalize_email(req.email))
    if user is None:
        user = await user_service.create_user(store, req.email, req.name)
        print(f"Created user: {user.email}")
    else:
        print(f"User {user.email} already exists.")

    # 2. Create the organization (creator becomes admin)
    org = await org_service.create_org(
        store, user.id, OrgCreateRequest(name=org_name, custom_join_code=join_code)
    )
    print(f"Created organization {org.name!r} with join code {org.join_code}")
    return org.join_code


async def main(args: argparse.Namespace) -> None:
    await init_db()
    await create_local_org(get_store(), args.email, args.name, args.org_name, args.join_code)


def run(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a local user and organization.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--name", default="Local Admin", help="Display name for the user")
    parser.add_argument("--org-name", required=True, help="Organization name")
    parser.add_argument("--join-code", default=None, help="Custom join code (generated if omitted)")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level, "text")
    try:
        asyncio.run(main(args))
    except FoundlyError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    except ValidationError as exc:
        print(f"Error: {exc.errors()[0]['msg']}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(run())
