"""
Create an admin account in the document store.

The dashboard can only add admins once someone can log in, so the first
account has to be created here.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from celebrate.config import get_settings
from celebrate.db import AlreadyExistsError
from celebrate.dependencies import build_store

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a dashboard admin")
    parser.add_argument("username", help="Admin username")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")

    pw1 = getpass.getpass("New admin password: ")
    pw2 = getpass.getpass("Confirm: ")
    if pw1 != pw2:
        logger.error("Passwords do not match.")
        return 1
    if len(pw1) < MIN_PASSWORD_LENGTH:
        logger.error("Password must be at least %d characters.", MIN_PASSWORD_LENGTH)
        return 1

    # Stored in plaintext: the login check compares strings directly.
    store = build_store(get_settings())
    try:
        store.add_admin(args.username, pw1)
    except AlreadyExistsError as exc:
        logger.error("%s", exc.message)
        return 1
    logger.info("Admin %s created", args.username)
    return 0


if __name__ == "__main__":
    sys.exit(main())
