from __future__ import annotations

import argparse

from app.auth.security import create_access_token


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Issue a signed bearer token for admin or checkout callers.")
    parser.add_argument("--subject", required=True, help="Operator or service name placed in the sub claim")
    parser.add_argument(
        "--role",
        action="append",
        required=True,
        help="Role granted by the token (repeatable, e.g. --role SponsorshipAdmin --role Checkout)",
    )
    parser.add_argument(
        "--minutes",
        type=int,
        default=None,
        help="Token lifetime in minutes (defaults to ACCESS_TOKEN_EXPIRE_MINUTES)",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    if args.minutes is not None and args.minutes <= 0:
        raise SystemExit("--minutes must be positive")
    token = create_access_token(subject=args.subject, roles=args.role, expires_minutes=args.minutes)
    print(token)


if __name__ == "__main__":
    main()
