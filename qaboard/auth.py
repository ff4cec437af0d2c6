"""
Bearer token verification for the board service
"""

from fastapi import HTTPException
from itsdangerous import BadSignature, SignatureExpired, TimestampSigner

from qaboard.models import Principal, Role


def sign_token(role: Role, user: str, secret_key: str) -> str:
    """
    Create a signed bearer token for a user acting in a role

    Args:
        role: Board role
        user: Display name of the user
        secret_key: Secret key for signing

    Returns:
        Signed token string
    """
    signer = TimestampSigner(secret_key)
    return signer.sign(f"{role.value}:{user}").decode()


def verify_token(
    token: str | None,
    secret_key: str,
    max_age: int | None = None,
) -> Principal | None:
    """
    Verify a bearer token

    Args:
        token: Signed token string
        secret_key: Secret key for verification
        max_age: Optional max age in seconds (None = no limit)

    Returns:
        Principal if valid, None if invalid or expired
    """
    if not token:
        return None

    try:
        signer = TimestampSigner(secret_key)
        if max_age is not None:
            data = signer.unsign(token, max_age=max_age).decode()
        else:
            data = signer.unsign(token).decode()

        role, user = data.split(":", 1)
        return Principal(role=Role(role), user=user)
    except (BadSignature, SignatureExpired):
        return None
    except ValueError:
        # Malformed payload or unknown role
        return None


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer ...`` header"""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


# FastAPI Dependencies


def require_principal(
    token: str | None,
    secret_key: str,
    max_age: int | None = None,
) -> Principal:
    """
    Require a valid token

    Raises:
        HTTPException: 401 if the token is invalid or missing
    """
    principal = verify_token(token, secret_key, max_age=max_age)

    if principal is None:
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing token",
        )

    return principal


def require_role(principal: Principal, role: Role, detail: str | None = None) -> Principal:
    """
    Require the principal to act in a specific role

    Raises:
        HTTPException: 403 if the role does not match
    """
    if principal.role is not role:
        raise HTTPException(
            status_code=403,
            detail=detail or f"Role '{role.value}' required",
        )

    return principal
