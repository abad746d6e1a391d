"""
Mint caller JWTs for a local or staging Quran MCP server.

In production, caller tokens come from the identity provider in front of the
server. Locally this script plays that role: it signs a token with the same
secret the server validates against (MCP_JWT_SECRET_KEY).

Usage examples:

    # Token for "octocat", valid for 8 hours (default secret)
    uv run python -m scripts.generate_token --sub octocat

    # With display name and email
    uv run python -m scripts.generate_token --sub octocat --name "The Octocat" --email octocat@example.com

    # Expired token (for testing rejection)
    uv run python -m scripts.generate_token --sub octocat --exp-hours -1

Register the server with an MCP client:

    claude mcp add --transport http quran http://localhost:8080/mcp \\
      --header "Authorization: Bearer <token>"
"""

import argparse
import datetime

import jwt

from quran_mcp.config import settings


def generate_token(
    subject: str,
    secret: str,
    name: str | None = None,
    email: str | None = None,
    algorithm: str = "HS256",
    exp_hours: float = 8.0,
) -> str:
    """Sign a caller token with the given claims (negative exp_hours = already expired)."""
    now = datetime.datetime.now(datetime.timezone.utc)
    payload: dict = {
        "sub": subject,
        "iat": now,
        "exp": now + datetime.timedelta(hours=exp_hours),
    }
    if name:
        payload["name"] = name
    if email:
        payload["email"] = email
    return jwt.encode(payload, secret, algorithm=algorithm)


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate caller JWTs for the Quran MCP server.")
    parser.add_argument("--sub", required=True, help="Caller login (the 'sub' claim)")
    parser.add_argument("--name", help="Display name")
    parser.add_argument("--email", help="Email address")
    parser.add_argument(
        "--secret",
        default=settings.jwt_secret_key,
        help="Signing secret (defaults to MCP_JWT_SECRET_KEY)",
    )
    parser.add_argument("--algorithm", default=settings.jwt_algorithm)
    parser.add_argument(
        "--exp-hours",
        type=float,
        default=8.0,
        help="Hours until the token expires (negative = already expired, default: 8)",
    )
    args = parser.parse_args()

    token = generate_token(
        subject=args.sub,
        secret=args.secret,
        name=args.name,
        email=args.email,
        algorithm=args.algorithm,
        exp_hours=args.exp_hours,
    )

    print(f"Subject:    {args.sub}")
    print(f"Expires in: {args.exp_hours} hours")
    print()
    print(f"Token: {token}")


if __name__ == "__main__":
    main()
