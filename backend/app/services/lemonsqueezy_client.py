"""LemonSqueezy REST API client.

WHAT:
    Thin async wrapper for the LemonSqueezy JSON:API endpoints this service
    needs:
    - Customers (create, retrieve for the portal link)
    - Checkouts (create)
    - Subscriptions / variants / products (list, following `links.next`)

WHY:
    Encapsulates headers, authentication and error mapping so routers and the
    sync service only deal with JSON documents.
    No retry or backoff: a failed call surfaces to the caller immediately.

REFERENCES:
    - https://docs.lemonsqueezy.com/api
    - https://docs.lemonsqueezy.com/api/getting-started/requests#pagination
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from app.config import Settings

logger = logging.getLogger(__name__)

JSON_API_CONTENT_TYPE = "application/vnd.api+json"


class LemonSqueezyAPIError(Exception):
    """Raised for transport failures and unexpected LemonSqueezy responses."""

    def __init__(self, message: str, status_code: Optional[int] = None, errors: Optional[List] = None):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []


class LemonSqueezyClient:
    """Client for the LemonSqueezy REST API.

    Usage:
        client = LemonSqueezyClient(api_key="...", store_id="116661")
        customer = await client.create_customer(name="Ada", email="ada@example.com")
        subscriptions = await client.list_resource("subscriptions")
    """

    def __init__(
        self,
        api_key: str,
        store_id: str = "",
        base_url: str = "https://api.lemonsqueezy.com",
        timeout: float = 30.0,
        sync_timeout: float = 120.0,
        page_size: int = 100,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            api_key: LemonSqueezy API key (sent as a bearer token)
            store_id: Store that customers and checkouts are created in
            base_url: API root, without the `/v1` suffix
            timeout: Timeout in seconds for proxy calls
            sync_timeout: Timeout in seconds for list calls made by the sync job
            page_size: `page[size]` requested on list calls (vendor max is 100)
            transport: Optional httpx transport, used by tests
        """
        self.api_key = api_key
        self.store_id = store_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.sync_timeout = sync_timeout
        self.page_size = page_size
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "LemonSqueezyClient":
        return cls(
            api_key=settings.LEMONSQUEEZY_API_KEY,
            store_id=settings.LEMONSQUEEZY_STORE_ID,
            base_url=settings.LEMONSQUEEZY_API_URL,
            timeout=settings.LEMONSQUEEZY_TIMEOUT,
            sync_timeout=settings.LEMONSQUEEZY_SYNC_TIMEOUT,
            page_size=settings.LEMONSQUEEZY_PAGE_SIZE,
        )

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Accept": JSON_API_CONTENT_TYPE,
            "Content-Type": JSON_API_CONTENT_TYPE,
            "Authorization": f"Bearer {self.api_key}",
        }

    def _url(self, path_or_url: str) -> str:
        # Pagination links come back absolute
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        return f"{self.base_url}/v1/{path_or_url.lstrip('/')}"

    async def send(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """Send one request and return the raw response, whatever its status.

        Raises:
            LemonSqueezyAPIError: If the request could not be completed
        """
        url = self._url(path)
        try:
            async with httpx.AsyncClient(
                timeout=timeout or self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    url,
                    json=json,
                    params=params,
                    headers=self.headers,
                )
        except httpx.HTTPError as e:
            logger.error(f"[LEMONSQUEEZY_CLIENT] {method} {url} failed: {e}")
            raise LemonSqueezyAPIError(f"Request to {url} failed: {e}") from e

        logger.debug("[LEMONSQUEEZY_CLIENT] %s %s -> %s", method, url, response.status_code)
        return response

    @staticmethod
    def _json_or_raise(response: httpx.Response) -> Dict[str, Any]:
        """Return the JSON body of a 2xx response.

        Raises:
            LemonSqueezyAPIError: On a non-2xx status or a non-JSON body
        """
        try:
            body = response.json()
        except ValueError as e:
            raise LemonSqueezyAPIError(
                "LemonSqueezy returned a non-JSON response",
                status_code=response.status_code,
            ) from e

        if not response.is_success:
            errors = body.get("errors", []) if isinstance(body, dict) else []
            detail = ", ".join(e.get("detail", str(e)) for e in errors if isinstance(e, dict))
            raise LemonSqueezyAPIError(
                f"LemonSqueezy API error {response.status_code}: {detail or response.text}",
                status_code=response.status_code,
                errors=errors,
            )
        return body

    # =========================================================================
    # CUSTOMERS
    # =========================================================================

    async def create_customer(self, name: str, email: str) -> Dict[str, Any]:
        """Create a customer in the configured store.

        Returns:
            JSON:API document; the new customer id is at `data.id`
        """
        payload = {
            "data": {
                "type": "customers",
                "attributes": {
                    "name": name,
                    "email": email,
                },
                "relationships": {
                    "store": {"data": {"type": "stores", "id": self.store_id}},
                },
            }
        }
        response = await self.send("POST", "customers", json=payload)
        return self._json_or_raise(response)

    async def get_customer(self, customer_id: str) -> httpx.Response:
        """Retrieve a customer. Returns the raw response so its status can be relayed."""
        return await self.send("GET", f"customers/{customer_id}")

    # =========================================================================
    # CHECKOUTS
    # =========================================================================

    async def create_checkout(
        self,
        variant_id: str,
        name: str,
        email: str,
        custom: Optional[Dict[str, Any]] = None,
        button_color: str = "#7047EB",
        preview: bool = True,
    ) -> httpx.Response:
        """Create a checkout for one variant.

        Returns the raw response: the caller relays status and body verbatim,
        including vendor-side validation errors.
        """
        payload = {
            "data": {
                "type": "checkouts",
                "attributes": {
                    "checkout_options": {"button_color": button_color},
                    "checkout_data": {
                        "name": name,
                        "email": email,
                        "custom": custom or {},
                    },
                    "preview": preview,
                },
                "relationships": {
                    "variant": {"data": {"type": "variants", "id": str(variant_id)}},
                    "store": {"data": {"type": "stores", "id": self.store_id}},
                },
            }
        }
        return await self.send("POST", "checkouts", json=payload)

    # =========================================================================
    # LISTS (sync)
    # =========================================================================

    async def list_resource(self, resource: str) -> List[Dict[str, Any]]:
        """Fetch every item of a list endpoint, following `links.next`.

        Args:
            resource: List endpoint name ("subscriptions", "variants", "products")

        Returns:
            Items in source order across all pages
        """
        items: List[Dict[str, Any]] = []
        next_url: Optional[str] = resource
        params: Optional[Dict[str, Any]] = {"page[size]": self.page_size}
        seen_links = set()

        while next_url:
            response = await self.send("GET", next_url, params=params, timeout=self.sync_timeout)
            body = self._json_or_raise(response)
            items.extend(body.get("data") or [])

            # `links.next` already carries the page parameters
            next_url = (body.get("links") or {}).get("next")
            params = None

            if next_url in seen_links:
                logger.warning(f"[LEMONSQUEEZY_CLIENT] Pagination for {resource} repeated {next_url}, stopping")
                break
            seen_links.add(next_url)

        logger.info(f"[LEMONSQUEEZY_CLIENT] Fetched {len(items)} {resource}")
        return items
