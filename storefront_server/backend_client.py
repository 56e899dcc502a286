"""Client for the hosted storefront backend (Supabase REST API)."""

import logging
from decimal import Decimal
from typing import Any, Optional

import httpx

from .exceptions import BackendError
from .models import (
    AddOn,
    Category,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    Product,
    ShippingAddress,
    ShippingMethod,
    Variation,
    Voucher,
)

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = (
    "id,name,description,base_price,discounted_price,category,subcategory,image_url,"
    "popular,available,stock,sku,brand,created_at,variations(*),add_ons(*)"
)

MAX_REDEEM_ATTEMPTS = 3


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


class StorefrontClient:
    """Client for the storefront tables exposed by the backend's REST API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the storefront client.

        Args:
            base_url: Project URL, e.g. https://xyz.supabase.co
            api_key: Anonymous (public) API key
            timeout: Request timeout in seconds
            transport: Optional transport override
        """
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=f"{self.base_url}/rest/v1",
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )

    async def close(self) -> None:
        await self.client.aclose()

    async def _request(
        self,
        method: str,
        table: str,
        params: Optional[dict[str, str]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = await self.client.request(method, f"/{table}", params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"{method} /{table} failed: {e}")
            raise BackendError(f"Could not reach backend: {e}") from e

        if response.status_code >= 400:
            detail = response.text
            try:
                detail = response.json().get("message", detail)
            except ValueError:
                pass
            logger.error(f"{method} /{table} returned {response.status_code}: {detail}")
            raise BackendError(f"{table} request failed: {detail}", status_code=response.status_code)

        if not response.content:
            return None
        return response.json()

    # Catalog

    def _parse_product(self, row: dict[str, Any]) -> Product:
        variations = [
            Variation(
                id=str(v["id"]),
                name=v["name"],
                price=_decimal(v.get("price")) or Decimal("0"),
                image_url=v.get("image_url"),
                sku=v.get("sku"),
                stock=v.get("stock"),
                sort_order=v.get("sort_order") or 0,
            )
            for v in row.get("variations") or []
        ]
        variations.sort(key=lambda v: v.sort_order)
        add_ons = [
            AddOn(
                id=str(a["id"]),
                name=a["name"],
                price=_decimal(a.get("price")) or Decimal("0"),
                category=a.get("category") or "",
                image=a.get("image"),
                description=a.get("description"),
            )
            for a in row.get("add_ons") or []
        ]
        # A zero discounted price means "no discount"
        discounted = _decimal(row.get("discounted_price")) or None
        return Product(
            id=str(row["id"]),
            name=row["name"],
            description=row.get("description") or "",
            base_price=_decimal(row.get("base_price")) or Decimal("0"),
            discounted_price=discounted,
            category=row.get("category") or "",
            subcategory=row.get("subcategory") or None,
            images=[row["image_url"]] if row.get("image_url") else [],
            popular=bool(row.get("popular")),
            available=row.get("available", True),
            variations=variations,
            add_ons=add_ons,
            brand=row.get("brand") or None,
            sku=row.get("sku") or None,
            stock=row.get("stock"),
        )

    async def get_products(self) -> list[Product]:
        """Get available products, newest first, with variations and add-ons."""
        rows = await self._request(
            "GET",
            "menu_items",
            params={"select": PRODUCT_COLUMNS, "available": "eq.true", "order": "created_at.desc"},
        )
        products = []
        for row in rows or []:
            try:
                products.append(self._parse_product(row))
            except ValueError as e:
                logger.warning(f"Skipping malformed product {row.get('id')}: {e}")
        logger.info(f"Fetched {len(products)} product(s)")
        return products

    async def get_product(self, product_id: str) -> Optional[Product]:
        rows = await self._request(
            "GET", "menu_items", params={"select": PRODUCT_COLUMNS, "id": f"eq.{product_id}"}
        )
        if not rows:
            return None
        return self._parse_product(rows[0])

    async def get_categories(self) -> list[Category]:
        """Get active categories as a flat list ordered by sort order."""
        rows = await self._request(
            "GET", "categories", params={"select": "*", "active": "eq.true", "order": "sort_order.asc"}
        )
        return [Category.model_validate(row) for row in rows or []]

    async def get_payment_methods(self) -> list[PaymentMethod]:
        rows = await self._request(
            "GET", "payment_methods", params={"select": "*", "active": "eq.true", "order": "sort_order.asc"}
        )
        return [PaymentMethod.model_validate(row) for row in rows or []]

    async def get_shipping_methods(self) -> list[ShippingMethod]:
        rows = await self._request(
            "GET", "shipping_methods", params={"select": "*", "is_active": "eq.true", "order": "sort_order.asc"}
        )
        return [ShippingMethod.model_validate(row) for row in rows or []]

    # Vouchers

    async def get_voucher(self, code: str) -> Optional[Voucher]:
        """Fetch a voucher by code (case-insensitive). Returns None when unknown."""
        canonical = code.strip().upper()
        rows = await self._request("GET", "vouchers", params={"select": "*", "code": f"eq.{canonical}"})
        if not rows:
            return None
        return Voucher.model_validate(rows[0])

    async def redeem_voucher(self, voucher: Voucher) -> Voucher:
        """
        Record one redemption of a voucher.

        The update is conditional on ``used_count`` still holding the value we
        read, so two checkouts racing for the last use cannot both succeed.
        The voucher is deactivated once it reaches ``max_uses``.

        Raises:
            BackendError: If the voucher vanished or the update kept conflicting
        """
        current = voucher
        for attempt in range(1, MAX_REDEEM_ATTEMPTS + 1):
            if current.max_uses is not None and current.used_count >= current.max_uses:
                raise BackendError(f"Voucher {current.code} has no uses left")

            new_count = current.used_count + 1
            deactivate = current.max_uses is not None and new_count >= current.max_uses
            rows = await self._request(
                "PATCH",
                "vouchers",
                params={"id": f"eq.{current.id}", "used_count": f"eq.{current.used_count}"},
                json={"used_count": new_count, "is_active": False if deactivate else current.is_active},
                prefer="return=representation",
            )
            if rows:
                logger.info(f"Voucher {current.code} redeemed ({new_count}/{current.max_uses or '∞'})")
                return Voucher.model_validate(rows[0])

            logger.warning(f"Voucher {current.code} changed concurrently (attempt {attempt}), re-reading")
            refreshed = await self.get_voucher(current.code)
            if refreshed is None:
                raise BackendError(f"Voucher {current.code} no longer exists")
            current = refreshed

        raise BackendError(f"Could not redeem voucher {voucher.code}: too many concurrent updates")

    # Orders

    async def create_order(self, order: Order) -> Order:
        """Insert the order row and return it with its backend id."""
        row = order.model_dump(mode="json", exclude={"id", "items", "created_at", "email"})
        row["status"] = order.status.value
        row["customer_email"] = order.email
        rows = await self._request("POST", "orders", json=[row], prefer="return=representation")
        if not rows:
            raise BackendError("Order creation returned no row")
        created = rows[0]
        logger.info(f"Created order {order.order_number} with id {created['id']}")
        return Order.model_validate(
            {**order.model_dump(), "id": str(created["id"]), "created_at": created.get("created_at")}
        )

    async def create_order_items(self, order_id: str, items: list[OrderItem]) -> None:
        rows = []
        for item in items:
            row = item.model_dump(mode="json")
            row["order_id"] = order_id
            rows.append(row)
        await self._request("POST", "order_items", json=rows, prefer="return=minimal")

    async def delete_order(self, order_id: str) -> None:
        await self._request("DELETE", "orders", params={"id": f"eq.{order_id}"})

    def _parse_order(self, row: dict[str, Any]) -> Order:
        address = row.get("shipping_address") or {}
        if "postalCode" in address and "postal_code" not in address:
            address = {**address, "postal_code": address["postalCode"]}
        items = [OrderItem.model_validate(item) for item in row.get("order_items") or []]
        return Order(
            id=str(row["id"]),
            order_number=row["order_number"],
            customer_name=row["customer_name"],
            contact_number=row["contact_number"],
            email=row.get("customer_email"),
            shipping_address=ShippingAddress.model_validate(address),
            shipping_method=row["shipping_method"],
            shipping_fee=_decimal(row.get("shipping_fee")) or Decimal("0"),
            subtotal=_decimal(row.get("subtotal")) or Decimal("0"),
            voucher_discount=_decimal(row.get("voucher_discount")) or Decimal("0"),
            total_amount=_decimal(row.get("total_amount")) or Decimal("0"),
            payment_method=row["payment_method"],
            notes=row.get("notes"),
            status=OrderStatus(row.get("status") or OrderStatus.PENDING.value),
            voucher_id=row.get("voucher_id"),
            voucher_code=row.get("voucher_code"),
            items=items,
            created_at=row.get("created_at"),
        )

    async def get_orders(self, limit: int = 100, include_items: bool = False) -> list[Order]:
        """Get the most recent orders."""
        select = "*,order_items(*)" if include_items else "*"
        rows = await self._request(
            "GET", "orders", params={"select": select, "order": "created_at.desc", "limit": str(limit)}
        )
        return [self._parse_order(row) for row in rows or []]

    async def get_order_details(self, order_id: str) -> Optional[Order]:
        rows = await self._request(
            "GET", "orders", params={"select": "*,order_items(*)", "id": f"eq.{order_id}"}
        )
        if not rows:
            return None
        return self._parse_order(rows[0])

    async def update_order_status(self, order_id: str, status: OrderStatus) -> None:
        rows = await self._request(
            "PATCH",
            "orders",
            params={"id": f"eq.{order_id}"},
            json={"status": status.value},
            prefer="return=representation",
        )
        if not rows:
            raise BackendError(f"Order {order_id} not found", status_code=404)
        logger.info(f"Order {order_id} status set to {status.value}")
