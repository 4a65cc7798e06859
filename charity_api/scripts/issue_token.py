#!/usr/bin/env python3
# SPDX-License-Identifier: Apache-2.0

"""
Issue an access token signed with ``JWT_SECRET`` for local testing.

    charity-issue-token <user-id> --role donor
"""

import argparse

from ..models.enums import UserRole
from ..services.auth import AuthService


def main(argv=None):
    parser = argparse.ArgumentParser(description="Issue a signed access token")
    parser.add_argument("user_id", help="Token subject")
    parser.add_argument("--role", choices=[role.value for role in UserRole], default=UserRole.DONOR.value)
    parser.add_argument("--email")
    parser.add_argument("--name")
    parser.add_argument("--expires-minutes", type=int, default=60)
    args = parser.parse_args(argv)

    auth_service = AuthService(access_token_expire_minutes=args.expires_minutes)
    print(auth_service.generate_access_token(args.user_id, args.role, args.email, args.name))


if __name__ == "__main__":
    main()
