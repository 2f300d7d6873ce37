"""FastAPI dependencies for tenant authentication and request context."""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Header, HTTPException, Path, Request

from restaurant_pos_service.auth.api_key_validator import APIKeyValidator
from restaurant_pos_service.auth.roles import UserRole


@dataclass(frozen=True)
class RequestContext:
    """Who is calling, and for which organization.

    Attributes:
        organization_id: Organization from the path, verified against the API key
        user_id: Staff member id from ``X-User-Id``
        user_name: Display name from ``X-User-Name``
        role: Staff role from ``X-User-Role``, None when absent
    """

    organization_id: str
    user_id: str
    user_name: str
    role: UserRole | None = None


def authorize_organization(
    organization_id: str,
    x_api_key: str | None,
    validator: APIKeyValidator | None,
) -> None:
    """Check that the API key is valid for ``organization_id``.

    Raises:
        HTTPException: 401 if the key is missing or unknown, 403 if it belongs
            to another organization
    """
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing API key")

    # Validator will be None in tests where it's mocked
    if validator is None:
        return
    if not validator.validate(x_api_key):
        raise HTTPException(status_code=401, detail="Invalid API key")
    if not validator.authorizes(x_api_key, organization_id):
        raise HTTPException(status_code=403, detail="API key not valid for this organization")


def parse_role(raw: str | None) -> UserRole | None:
    """Role from the ``X-User-Role`` header.

    Raises:
        HTTPException: 400 for an unknown role
    """
    if not raw:
        return None
    try:
        return UserRole(raw.lower())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown role: {raw}") from None


def get_request_context(
    request: Request,
    organization_id: Annotated[str, Path()],
    x_api_key: Annotated[str | None, Header()] = None,
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_name: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """FastAPI dependency resolving the caller of an organization route.

    Returns:
        RequestContext: The authorized caller

    Raises:
        HTTPException: 401/403 on authentication failures, 400 on a bad role
    """
    validator: APIKeyValidator | None = getattr(request.app.state, "api_key_validator", None)
    authorize_organization(organization_id, x_api_key, validator)
    return RequestContext(
        organization_id=organization_id,
        user_id=x_user_id or "unknown",
        user_name=x_user_name or "Unknown User",
        role=parse_role(x_user_role),
    )
