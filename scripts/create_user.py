"""Register an account directly in the configured DB.

Usage:
  python scripts/create_user.py --email alice@example.com --password '...' [--username alice]

Goes through the same validation as POST /auth/register.
NOTE: This is intended for local/dev.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from book_catalog.auth import SqlIdentityStore, register
from book_catalog.config import load_config
from book_catalog.db import connect, init_db
from book_catalog.errors import ServiceError


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--username", default=None)
    args = ap.parse_args()

    cfg = load_config()
    init_db(cfg.DB_DSN)

    try:
        with connect(cfg.DB_DSN) as conn:
            u = register(
                SqlIdentityStore(conn),
                args.email,
                args.password,
                args.username,
                password_scheme=cfg.AUTH_PASSWORD_SCHEME,
            )
    except ServiceError as e:
        print(f"Could not create user: {e.message}", file=sys.stderr)
        sys.exit(1)

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
