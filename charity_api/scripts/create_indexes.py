#!/usr/bin/env python3
# SPDX-License-Identifier: Apache-2.0

"""
Create the MongoDB indexes used by orphan and sponsorship queries.

    charity-create-indexes [--uri mongodb://...] [--database charity_dev]

Exits non-zero when the database cannot be reached.
"""

import argparse
import logging

from ..observability.config import setup_structured_logging
from ..services.mongodb import MongoDBService

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create MongoDB indexes")
    parser.add_argument("--uri", help="Connection string (defaults to MONGODB_URI)")
    parser.add_argument("--database", help="Database name (defaults to MONGODB_DATABASE)")
    args = parser.parse_args(argv)

    setup_structured_logging("development")
    mongodb_service = MongoDBService(args.uri, args.database)

    try:
        health = mongodb_service.health_check()
        if health['status'] != 'healthy':
            logger.error(f"Database {health['database']} unreachable: {health.get('error')}")
            return 1

        created = mongodb_service.create_indexes()
        for collection, names in created.items():
            logger.info(f"{collection}: {', '.join(names)}")
        return 0
    finally:
        mongodb_service.close_connection()


if __name__ == "__main__":
    raise SystemExit(main())
