"""
HTTP client for the storefront REST API
"""
from decimal import Decimal
from functools import lru_cache
from typing import Any, Callable, List, Optional, Union

import requests
import structlog
from pydantic import TypeAdapter, ValidationError

from storefront.config import Config, get_config
from storefront.errors import (
    AuthenticationError,
    NetworkError,
    RemoteRejectedError,
    ResponseSchemaError,
)
from storefront.models import (
    ApiFailure,
    ApiSuccess,
    CartItem,
    CartItemAdded,
    CartItemChanged,
    CartListing,
    DiscountValidation,
    ProfilePayload,
    UserProfile,
)


@lru_cache(maxsize=None)
def _envelope_adapter(payload_type: Any) -> TypeAdapter:
    return TypeAdapter(Union[ApiSuccess[payload_type], ApiFailure])


class StorefrontApiClient:
    """Client for the cart, discount and user endpoints"""

    def __init__(
        self,
        config: Optional[Config] = None,
        session: Optional[requests.Session] = None,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
    ):
        """
        Initialize the API client

        Args:
            config: Client configuration (default: global config)
            session: requests session to reuse (default: a new one)
            token_provider: Callable returning the current bearer token
        """
        self.config = config or get_config()
        self.base_url = self.config.api_base_url.rstrip("/")
        self.timeout = self.config.request_timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })
        self._token_provider = token_provider or (lambda: self.config.auth_token)
        self.logger = structlog.get_logger().bind(component="api_client")

    def _headers(self) -> dict:
        token = self._token_provider()
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    def _request(self, method: str, path: str, payload_type: Any, **kwargs) -> Any:
        """
        Send a request and unwrap the response envelope

        Returns:
            The validated `data` payload of a success envelope

        Raises:
            NetworkError: transport failure or unexpected status
            AuthenticationError: 401/403
            ResponseSchemaError: body is not a known envelope
            RemoteRejectedError: server answered success=false
        """
        url = f"{self.base_url}{path}"

        try:
            response = self.session.request(
                method, url, headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            self.logger.error("Request failed", method=method, path=path, error=str(e))
            raise NetworkError(f"{method} {path} failed: {e}") from e

        status = response.status_code

        try:
            body = response.json()
        except ValueError:
            body = None

        if status in (401, 403):
            message = body.get("message") if isinstance(body, dict) else None
            self.logger.warning("Request not authorized", method=method, path=path, status=status)
            raise AuthenticationError(message or "Authentication required", status_code=status)

        if body is None:
            self.logger.error("Response is not JSON", method=method, path=path, status=status)
            raise ResponseSchemaError(f"{method} {path} returned a non-JSON body", status_code=status)

        # a 5xx failure envelope is a server fault, not a rejection of the request
        if status >= 500:
            message = body.get("message") if isinstance(body, dict) else None
            self.logger.error("Server error", method=method, path=path, status=status, message=message)
            raise NetworkError(
                f"{method} {path} returned HTTP {status}: {message or 'server error'}",
                status_code=status,
            )

        try:
            envelope = _envelope_adapter(payload_type).validate_python(body)
        except ValidationError as e:
            self.logger.error(
                "Unexpected response shape",
                method=method,
                path=path,
                status=status,
                error_count=e.error_count(),
            )
            raise ResponseSchemaError(f"{method} {path} returned an unexpected body", status_code=status) from e

        if isinstance(envelope, ApiFailure):
            self.logger.warning(
                "Request rejected by server",
                method=method,
                path=path,
                status=status,
                message=envelope.message,
            )
            raise RemoteRejectedError(envelope.message, status_code=status, errors=envelope.errors)

        if status >= 400:
            raise NetworkError(f"{method} {path} returned HTTP {status}", status_code=status)

        return envelope.data

    def get_cart(self, user_id: str) -> List[CartItem]:
        """GET /cart for a user"""
        listing = self._request("GET", "/cart", CartListing, params={"user_id": user_id})
        self.logger.debug("Cart fetched", user_id=user_id, count=len(listing.items))
        return listing.items

    def add_item(self, user_id: str, item: CartItem) -> CartItemAdded:
        """POST /cart/add; returns the server-assigned cart item id"""
        return self._request("POST", "/cart/add", CartItemAdded, json={
            "user_id": user_id,
            "product_id": item.product_id,
            "quantity": item.quantity,
            "color": item.color,
            "size": item.size,
        })

    def update_item(self, user_id: str, item_id: str, quantity: int) -> CartItemChanged:
        """PUT /cart/items/{id}"""
        return self._request("PUT", f"/cart/items/{item_id}", CartItemChanged, json={
            "user_id": user_id,
            "quantity": quantity,
        })

    def remove_item(self, user_id: str, item_id: str) -> CartItemChanged:
        """DELETE /cart/items/{id}"""
        return self._request(
            "DELETE", f"/cart/items/{item_id}", CartItemChanged, params={"user_id": user_id}
        )

    def clear_cart(self, user_id: str) -> None:
        """DELETE /cart/clear"""
        self._request("DELETE", "/cart/clear", Optional[Any], params={"user_id": user_id})

    def validate_discount_code(
        self,
        code: str,
        total_amount: Decimal,
        product_ids: Optional[List[str]] = None,
        category_ids: Optional[List[str]] = None,
    ) -> DiscountValidation:
        """POST /discount-codes/validate"""
        return self._request("POST", "/discount-codes/validate", DiscountValidation, json={
            "code": code,
            "total_amount": float(total_amount),
            "product_ids": product_ids or [],
            "category_ids": category_ids or [],
        })

    def get_user_profile(self) -> UserProfile:
        """GET /user/profile"""
        payload = self._request("GET", "/user/profile", ProfilePayload)
        return payload.user

    def close(self) -> None:
        """Close the HTTP session"""
        self.session.close()
        self.logger.info("API client session closed")
