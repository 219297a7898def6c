"""FastAPI dependencies for the Batch Maker parser API.

Provides:
- Database session dependency
- Request session (bearer token -> RequestSession)
- The parser service built at app startup
"""

from typing import Optional

from fastapi import Header, Request

from .core.auth import RequestSession
from .services.recipe_parser import RecipeParserService

__all__ = ["get_db", "get_session", "get_parser_service"]


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_session(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> RequestSession:
    """Wrap the caller's bearer token.

    A missing or malformed header is not rejected here; the parser reports
    UNAUTHORIZED through its normal result so every failure has the same shape.
    """
    return RequestSession.from_authorization_header(authorization, request.app.state.auth_verifier)


def get_parser_service(request: Request) -> RecipeParserService:
    return request.app.state.parser_service
