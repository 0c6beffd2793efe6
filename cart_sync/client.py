"""
Cart Service Client

HTTP client for the remote cart service, coupon endpoints and the
product snapshot source. Authenticated calls carry a bearer token.
"""

import logging
from typing import Optional, Any

import httpx
from pydantic import ValidationError

from .exceptions import CartServiceError, CouponValidationError
from .models import CouponApplication, ProductSnapshot, ServerCart

logger = logging.getLogger(__name__)


class CartServiceClient:
    """
    Client for the cart REST backend.

    Responses are expected in the envelope `{statusCode, message, data}`;
    bare payloads are accepted too. Every failure surfaces as
    CartServiceError.
    """

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize cart service client.

        Args:
            base_url: Base URL of the REST backend, e.g. http://host/api
            access_token: Bearer token of the authenticated identity, if any
            timeout: Request timeout in seconds
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._http_client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings, access_token: Optional[str] = None) -> "CartServiceClient":
        return cls(
            base_url=settings.api_base_url,
            access_token=access_token,
            timeout=settings.request_timeout,
        )

    @property
    def is_authenticated(self) -> bool:
        return bool(self._access_token)

    def set_access_token(self, access_token: Optional[str]) -> None:
        self._access_token = access_token

    async def close(self) -> None:
        """Close HTTP client"""
        await self._http_client.aclose()

    def _generate_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        body: Optional[dict] = None,
        error_cls: type = CartServiceError,
    ) -> Any:
        """Make an HTTP request and return the unwrapped `data` payload"""
        url = f"{self.base_url}/{path.lstrip('/')}"

        try:
            response = await self._http_client.request(
                method=method,
                url=url,
                headers=self._generate_headers(),
                json=body,
            )
        except httpx.HTTPError as e:
            logger.error(f"Request failed: {method} {url} - {e}")
            raise CartServiceError(f"Could not reach cart service: {e}") from e

        try:
            payload = response.json() if response.content else None
        except ValueError:
            payload = None

        if response.status_code >= 400:
            message = _extract_message(payload) or response.reason_phrase or "Request failed"
            logger.error(f"Request failed: {response.status_code} - {message}")
            raise error_cls(message, status_code=response.status_code)

        logger.debug(f"{method} {url} -> {response.status_code}")

        if isinstance(payload, dict) and "data" in payload:
            return payload["data"]
        return payload

    def _parse(self, model: type, data: Any, what: str):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise CartServiceError(f"Malformed {what} response: {e}") from e

    # ==================== Product APIs ====================

    async def get_product(self, product_id: int) -> ProductSnapshot:
        """Get the current snapshot of a product"""
        data = await self._request("GET", f"products/{product_id}")
        return self._parse(ProductSnapshot, data, "product")

    # ==================== Cart APIs ====================

    async def get_cart(self) -> ServerCart:
        """Get the authenticated identity's cart"""
        data = await self._request("GET", "cart")
        return self._parse(ServerCart, data, "cart")

    async def add_item(self, product_id: int, quantity: int = 1) -> ServerCart:
        """Add an item, or increment it when the product is already present"""
        data = await self._request(
            "POST",
            "cart/items",
            body={"productId": product_id, "quantity": quantity},
        )
        return self._parse(ServerCart, data, "cart")

    async def update_item(self, item_id: int, quantity: int) -> ServerCart:
        """Set the absolute quantity of a cart row"""
        data = await self._request(
            "PATCH",
            f"cart/items/{item_id}",
            body={"quantity": quantity},
        )
        return self._parse(ServerCart, data, "cart")

    async def remove_item(self, item_id: int) -> ServerCart:
        """Remove a cart row"""
        data = await self._request("DELETE", f"cart/items/{item_id}")
        return self._parse(ServerCart, data, "cart")

    async def clear_cart(self) -> ServerCart:
        """Remove every cart row"""
        data = await self._request("DELETE", "cart")
        return self._parse(ServerCart, data, "cart")

    async def remove_coupon(self) -> ServerCart:
        """Detach the coupon from the cart"""
        data = await self._request("DELETE", "cart/coupon")
        return self._parse(ServerCart, data, "cart")

    # ==================== Coupon APIs ====================

    async def validate_coupon(self, code: str) -> None:
        """Raise CouponValidationError unless the code is currently valid"""
        await self._request(
            "POST",
            "coupons/validate",
            body={"code": code},
            error_cls=CouponValidationError,
        )

    async def apply_coupon(self, code: str, subtotal: float) -> CouponApplication:
        """Compute the coupon discount against `subtotal`"""
        data = await self._request(
            "POST",
            "coupons/apply",
            body={"code": code, "subtotal": subtotal},
            error_cls=CouponValidationError,
        )
        if not data:
            raise CouponValidationError("Failed to apply coupon")
        return self._parse(CouponApplication, data, "coupon")


def _extract_message(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("detail")
        if isinstance(message, str):
            return message
    return None
