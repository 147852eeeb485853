"""Print a signed token for local development, shaped like the SSO server's tokens."""
import argparse

from cms.config import get_settings
from cms.core.security import create_access_token
from cms.models.enums import Role
from cms.utils.durations import parse_duration


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("user_id")
    parser.add_argument("--role", action="append", choices=[r.value for r in Role], default=[])
    parser.add_argument("--email")
    parser.add_argument("--name")
    parser.add_argument("--department-id")
    parser.add_argument("--expires-in", help="e.g. 1d, 12h, 30m (defaults to JWT_EXPIRES_IN)")
    return parser


def issue_token(argv=None) -> str:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    claims = {"sub": args.user_id, "roles": args.role}
    if args.email:
        claims["email"] = args.email
    if args.name:
        claims["name"] = args.name
    if args.department_id:
        claims["departmentId"] = args.department_id

    return create_access_token(
        claims,
        settings.JWT_SECRET,
        parse_duration(args.expires_in or settings.JWT_EXPIRES_IN),
        algorithm=settings.JWT_ALGORITHM,
    )


def main():
    print(issue_token())


if __name__ == "__main__":
    main()
