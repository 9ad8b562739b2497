"""Unit tests for the product catalog collaborators."""

from __future__ import annotations

from decimal import Decimal

import httpx
import pytest

from orderflow.catalog import (
    SAMPLE_PRODUCTS,
    HttpProductCatalog,
    InMemoryProductCatalog,
    Product,
    ProductCatalog,
)
from orderflow.exceptions import CatalogError
from orderflow.observability import TRACEPARENT_HEADER, OpenTelemetryTracer


class TestInMemoryProductCatalog:
    @pytest.mark.asyncio
    async def test_sample_products(self):
        catalog = InMemoryProductCatalog()

        product = await catalog.get_product("1")
        assert product.name == "Windsurf Laptop Pro"
        assert product.price == Decimal("1299.99")
        assert len(catalog) == len(SAMPLE_PRODUCTS)

    @pytest.mark.asyncio
    async def test_unknown_product(self):
        assert await InMemoryProductCatalog().get_product("999") is None

    @pytest.mark.asyncio
    async def test_custom_products_and_add(self):
        catalog = InMemoryProductCatalog([])
        assert len(catalog) == 0

        catalog.add(Product(id="x", name="Thing", price=Decimal("1.50")))
        assert (await catalog.get_product("x")).price == Decimal("1.50")

    def test_implements_protocol(self):
        assert isinstance(InMemoryProductCatalog(), ProductCatalog)


def _catalog_with(handler) -> HttpProductCatalog:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpProductCatalog("http://catalog:8080/", client=client)


class TestHttpProductCatalog:
    @pytest.mark.asyncio
    async def test_fetches_product(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"id": "7", "name": "Widget", "price": "12.50"})

        product = await _catalog_with(handler).get_product("7")

        assert product == Product(id="7", name="Widget", price=Decimal("12.50"))
        assert str(requests[0].url) == "http://catalog:8080/products/7"

    @pytest.mark.parametrize("product_id", ["../health", "a/b", "..", "1?debug=1", "1#top"])
    @pytest.mark.asyncio
    async def test_product_id_stays_in_one_path_segment(self, product_id):
        paths: list[bytes] = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.raw_path)
            return httpx.Response(404)

        assert await _catalog_with(handler).get_product(product_id) is None

        path = paths[0]
        assert path.startswith(b"/products/")
        assert b"/" not in path[len(b"/products/") :]
        assert b"?" not in path
        assert b"#" not in path

    @pytest.mark.asyncio
    async def test_not_found_returns_none(self):
        catalog = _catalog_with(lambda request: httpx.Response(404))
        assert await catalog.get_product("7") is None

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        catalog = _catalog_with(lambda request: httpx.Response(503))
        with pytest.raises(CatalogError, match="HTTP 503"):
            await catalog.get_product("7")

    @pytest.mark.asyncio
    async def test_invalid_body_raises(self):
        catalog = _catalog_with(lambda request: httpx.Response(200, json={"id": "7"}))
        with pytest.raises(CatalogError, match="Invalid catalog response"):
            await catalog.get_product("7")

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(CatalogError, match="Catalog request failed"):
            await _catalog_with(handler).get_product("7")

    @pytest.mark.asyncio
    async def test_forwards_trace_context(self, find_span):
        seen: dict[str, str] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.headers)
            return httpx.Response(404)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        catalog = HttpProductCatalog(
            "http://catalog:8080", client=client, tracer=OpenTelemetryTracer(__name__)
        )
        await catalog.get_product("7")

        span = find_span("catalog.get_product")
        assert span is not None
        assert seen[TRACEPARENT_HEADER].split("-")[1] == f"{span.context.trace_id:032x}"

    @pytest.mark.asyncio
    async def test_close_leaves_injected_client_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(404)))
        catalog = HttpProductCatalog("http://catalog:8080", client=client)

        await catalog.close()
        assert not client.is_closed
        await client.aclose()
