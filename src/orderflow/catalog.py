"""
Product catalog collaborator.

The orchestrator resolves a product id to its name and unit price before
charging. ``InMemoryProductCatalog`` ships with the shop's sample products;
``HttpProductCatalog`` asks a remote catalog service.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import Decimal
from typing import Protocol, runtime_checkable
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from orderflow.exceptions import CatalogError
from orderflow.observability import (
    ATTR_PRODUCT_ID,
    SpanKindEnum,
    Tracer,
    create_tracer,
    inject_headers,
)

logger = logging.getLogger(__name__)


class Product(BaseModel):
    """A catalog entry."""

    id: str
    name: str
    price: Decimal


SAMPLE_PRODUCTS: tuple[Product, ...] = (
    Product(id="1", name="Windsurf Laptop Pro", price=Decimal("1299.99")),
    Product(id="2", name="Cascade AI Assistant", price=Decimal("249.99")),
    Product(id="3", name="OpenTelemetry Guide Book", price=Decimal("39.99")),
    Product(id="4", name="Elastic APM T-Shirt", price=Decimal("19.99")),
    Product(id="5", name="Observability Platform - 1 Year License", price=Decimal("3999.99")),
)


@runtime_checkable
class ProductCatalog(Protocol):
    """Read-only product lookup."""

    async def get_product(self, product_id: str) -> Product | None:
        """
        Look up a product.

        Returns:
            The product, or None when the catalog has no such id

        Raises:
            CatalogError: If the catalog cannot be queried
        """
        ...


class InMemoryProductCatalog:
    """
    Catalog backed by a dict.

    Args:
        products: Initial products; defaults to SAMPLE_PRODUCTS
    """

    def __init__(self, products: Iterable[Product] | None = None) -> None:
        source = SAMPLE_PRODUCTS if products is None else products
        self._products: dict[str, Product] = {p.id: p for p in source}

    def add(self, product: Product) -> None:
        self._products[product.id] = product

    async def get_product(self, product_id: str) -> Product | None:
        return self._products.get(product_id)

    def __len__(self) -> int:
        return len(self._products)


class HttpProductCatalog:
    """
    Catalog client for a remote catalog service.

    Calls ``GET {base_url}/products/{id}`` and forwards the active trace
    context. The client is created lazily and closed with ``close()``.

    Args:
        base_url: Root URL of the catalog service
        timeout: Request timeout in seconds
        client: Optional preconfigured httpx.AsyncClient (not closed by us)
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to create OpenTelemetry spans (ignored if tracer given)
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def get_product(self, product_id: str) -> Product | None:
        # encoded as a single path segment, dots included
        segment = quote(product_id, safe="").replace(".", "%2E")
        url = f"{self._base_url}/products/{segment}"
        with self._tracer.span_with_kind(
            "catalog.get_product",
            SpanKindEnum.CLIENT,
            {ATTR_PRODUCT_ID: product_id},
        ):
            headers = inject_headers({})
            try:
                response = await self._get_client().get(url, headers=headers)
            except httpx.HTTPError as e:
                logger.error("Catalog request to %s failed: %s", url, e)
                raise CatalogError(f"Catalog request failed: {e}") from e

            if response.status_code == 404:
                return None
            if response.status_code >= 400:
                raise CatalogError(
                    f"Catalog returned HTTP {response.status_code} for product {product_id}"
                )

            try:
                return Product.model_validate(response.json())
            except (ValueError, ValidationError) as e:
                raise CatalogError(f"Invalid catalog response for product {product_id}") from e

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


__all__ = [
    "Product",
    "ProductCatalog",
    "InMemoryProductCatalog",
    "HttpProductCatalog",
    "SAMPLE_PRODUCTS",
]
