"""
Authentication utilities for API key validation and tenant resolution.
"""
import logging
from typing import Optional
from fastapi import Request, Security, HTTPException, status
from fastapi.security import APIKeyHeader
from app.config import get_settings
from app.utils.helpers import unauthorized_error

logger = logging.getLogger(__name__)

# API Key header
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(api_key: Optional[str] = Security(api_key_header)) -> str:
    """
    Verify API key from request header.

    Args:
        api_key: API key from X-API-Key header

    Returns:
        The validated API key

    Raises:
        HTTPException: If API key is missing or invalid
    """
    settings = get_settings()

    # If no API key is configured, skip authentication
    if not settings.API_KEY:
        return "no-auth-required"

    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required. Provide X-API-Key header."
        )

    if api_key != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key"
        )

    return api_key


async def get_organization_id(request: Request) -> str:
    """
    Resolve the organization the request is scoped to.

    The upstream authentication layer (JWT or API-key guard) either stores
    the tenant on ``request.state.organization_id`` or forwards it in the
    configured organization header. There is no fallback organization.

    Args:
        request: Incoming request

    Returns:
        Organization ID

    Raises:
        HTTPException: 401 if no organization could be resolved
    """
    settings = get_settings()

    organization_id = getattr(request.state, "organization_id", None)
    if not organization_id:
        organization_id = request.headers.get(settings.ORGANIZATION_HEADER, "").strip()

    if not organization_id:
        logger.warning(f"Rejected analytics request without organization: {request.url.path}")
        raise unauthorized_error("Organization ID not found")

    return organization_id
