"""
FastAPI wiring for request-scoped carts.

Usage:
    from fastapi import Depends
    from sessioncart.deps import get_cart

    @router.post("/cart/items")
    def add(body: AddItem, cart: Cart = Depends(get_cart)):
        return cart.add_item(body.id, body.name, quantity=body.quantity, price=body.price).to_dict()
"""
import secrets
from typing import Optional

from fastapi import HTTPException, Request, Response

from sessioncart.cart import Cart, create_cart
from sessioncart.cart.storage import RedisSessionStore, SessionStore
from sessioncart.config import get_settings
from sessioncart.db import RedisKeys
from sessioncart.errors import (
    CartAlreadyStoredError,
    CartError,
    CartStorageError,
    InvalidArgumentError,
    InvalidRowIdError,
)
from sessioncart.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)

SESSION_COOKIE = "cart_session"

_STATUS_BY_ERROR = (
    (InvalidRowIdError, 404),
    (CartAlreadyStoredError, 409),
    (InvalidArgumentError, 422),
    (CartStorageError, 503),
)


def get_session_id(request: Request, response: Response) -> str:
    """Read the cart session cookie, issuing a new one when absent."""
    session_id = request.cookies.get(SESSION_COOKIE)
    if not session_id:
        session_id = secrets.token_urlsafe(32)
        response.set_cookie(
            SESSION_COOKIE,
            session_id,
            max_age=get_settings().session_ttl,
            httponly=True,
            samesite="lax",
        )
    return session_id


def get_cart(request: Request, response: Response) -> Cart:
    """FastAPI dependency: cart of the caller's session, default instance."""
    return create_cart(get_session_id(request, response))


def handle_logout(session_id: str, store: Optional[SessionStore] = None) -> bool:
    """
    Drop every cart instance of a session when destroy_on_logout is set.

    Returns True when carts were forgotten.
    """
    settings = get_settings()
    if not settings.destroy_on_logout:
        return False

    store = store or RedisSessionStore(session_id, ttl=settings.session_ttl)
    store.forget(RedisKeys.CART_PREFIX)
    logger.info(f"Forgot carts of session {sanitize_id_for_logging(session_id)} on logout")
    return True


def to_http_exception(error: CartError) -> HTTPException:
    """Map a cart error to the HTTP status the API returns for it."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=error.message)
    return HTTPException(status_code=400, detail=error.message)
