"""HTTP server for the Storefront MCP Server."""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .auth import AdminAuthManager
from .backend_client import StorefrontClient
from .catalog import ProductCatalog, build_category_tree, filter_by_category, search_products
from .checkout import CheckoutSession
from .config import StorefrontSettings, load_settings
from .exceptions import BackendError, CheckoutError, NotAuthenticatedError
from .models import CustomerDetails, OrderStatus, ShippingAddress

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("storefront-http-server")

SESSION_COOKIE = "storefront_session"
SESSION_HEADER = "X-Session-Id"

# Global state
settings: Optional[StorefrontSettings] = None
auth_manager: Optional[AdminAuthManager] = None
storefront_client: Optional[StorefrontClient] = None
product_catalog: Optional[ProductCatalog] = None
# One checkout session (cart, voucher, customer details) per shopper
sessions: dict[str, CheckoutSession] = {}


def configure(config: StorefrontSettings, client: Optional[StorefrontClient] = None) -> None:
    """Create the client, admin gate and product catalog from settings."""
    global settings, auth_manager, storefront_client, product_catalog

    settings = config
    storefront_client = client or StorefrontClient(config.backend_url, config.backend_key)
    auth_manager = AdminAuthManager(config.admin_password, config.session_file)
    product_catalog = ProductCatalog(storefront_client)
    sessions.clear()


def get_session(
    request: Request,
    response: Response,
    x_session_id: Optional[str] = Header(None),
) -> CheckoutSession:
    """
    Resolve the caller's checkout session.

    The id comes from the X-Session-Id header, then the session cookie. A
    caller presenting neither gets a new session and a cookie for it.
    """
    session_id = x_session_id or request.cookies.get(SESSION_COOKIE)
    if not session_id:
        session_id = uuid.uuid4().hex
        response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")

    session = sessions.get(session_id)
    if session is None:
        logger.info(f"Creating checkout session {session_id[:8]}")
        session = CheckoutSession(
            storefront_client,
            store_name=settings.store_name,
            messenger_page_id=settings.messenger_page_id,
            currency=settings.currency,
        )
        sessions[session_id] = session
    response.headers[SESSION_HEADER] = session_id
    return session


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    # Startup
    logger.info("Starting Storefront HTTP Server...")
    configure(load_settings())

    yield

    # Shutdown
    logger.info("Shutting down Storefront HTTP Server...")
    await storefront_client.close()


app = FastAPI(
    title="Storefront MCP Server",
    description="HTTP API for the storefront catalog, cart and checkout",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError):
    logger.error(f"Backend error on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=502, content={"detail": exc.message})


@app.exception_handler(CheckoutError)
async def checkout_error_handler(request: Request, exc: CheckoutError):
    return JSONResponse(status_code=400, content={"detail": exc.message, "code": exc.code})


@app.exception_handler(NotAuthenticatedError)
async def not_authenticated_handler(request: Request, exc: NotAuthenticatedError):
    return JSONResponse(status_code=401, content={"detail": str(exc)})


# Request/Response Models
class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = 1
    variation_id: Optional[str] = None
    add_on_ids: list[str] = []


class UpdateQuantityRequest(BaseModel):
    line_id: str
    quantity: int


class RemoveFromCartRequest(BaseModel):
    line_id: str


class VoucherRequest(BaseModel):
    code: str


class CheckoutDetailsRequest(BaseModel):
    customer_name: str
    contact_number: str
    email: Optional[str] = None
    shipping_address: ShippingAddress
    shipping_method_id: str
    payment_method_id: str
    notes: Optional[str] = None


class AdminLoginRequest(BaseModel):
    password: str


class OrderStatusRequest(BaseModel):
    status: OrderStatus


class CartMutationResponse(BaseModel):
    success: bool
    message: str
    line_id: Optional[str] = None


def require_admin() -> None:
    if not auth_manager.is_authenticated():
        raise NotAuthenticatedError("Admin access required")


def cart_summary(session: CheckoutSession) -> dict:
    return {
        **session.cart.snapshot().model_dump(mode="json"),
        "shipping_fee": str(session.shipping_fee),
        "voucher_code": session.voucher.code if session.voucher else None,
        "voucher_discount": str(session.voucher_discount),
        "grand_total": str(session.total),
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Storefront MCP Server",
        "version": "0.1.0",
        "description": "HTTP API for the storefront catalog, cart and checkout",
        "mcp_compatible": True,
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "session": f"{SESSION_HEADER} header or {SESSION_COOKIE} cookie",
            "catalog": {"products": "GET /products", "product": "GET /products/{id}", "categories": "GET /categories"},
            "cart": {
                "get": "GET /cart",
                "add": "POST /cart/add",
                "update": "POST /cart/update",
                "remove": "POST /cart/remove",
                "clear": "POST /cart/clear",
            },
            "checkout": {
                "shipping_methods": "GET /shipping-methods",
                "payment_methods": "GET /payment-methods",
                "apply_voucher": "POST /voucher/apply",
                "remove_voucher": "POST /voucher/remove",
                "details": "POST /checkout/details",
                "place_order": "POST /checkout/place-order",
            },
            "admin": {
                "login": "POST /admin/login",
                "logout": "POST /admin/logout",
                "orders": "GET /admin/orders",
                "order": "GET /admin/orders/{id}",
                "status": "POST /admin/orders/{id}/status",
            },
        },
    }


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "admin_authenticated": auth_manager.is_authenticated() if auth_manager else False,
    }


# Catalog endpoints
@app.get("/products")
async def list_products(query: str = "", category: Optional[str] = None):
    """List available products, optionally filtered."""
    products = await product_catalog.get_products()
    if category:
        products = filter_by_category(products, category)
    products = search_products(products, query)
    return {
        "count": len(products),
        "products": [product.model_dump(mode="json") for product in products],
    }


@app.get("/products/{product_id}")
async def get_product(product_id: str):
    product = await product_catalog.find(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product {product_id} not found")
    return product.model_dump(mode="json")


@app.get("/categories")
async def list_categories():
    categories = build_category_tree(await storefront_client.get_categories())
    return {"categories": [category.model_dump(mode="json") for category in categories]}


# Cart endpoints
@app.get("/cart")
async def get_cart(session: CheckoutSession = Depends(get_session)):
    """Get current shopping cart."""
    return cart_summary(session)


@app.post("/cart/add", response_model=CartMutationResponse)
async def add_to_cart(
    request: AddToCartRequest, session: CheckoutSession = Depends(get_session)
):
    """Add a product to the cart."""
    product = await product_catalog.find(request.product_id)
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product {request.product_id} not found")

    variation = None
    if request.variation_id:
        variation = product.get_variation(request.variation_id)
        if variation is None:
            raise HTTPException(status_code=404, detail=f"Variation {request.variation_id} not found")

    add_ons = []
    for add_on_id in request.add_on_ids:
        add_on = product.get_add_on(add_on_id)
        if add_on is None:
            raise HTTPException(status_code=404, detail=f"Add-on {add_on_id} not found")
        add_ons.append(add_on)

    result = session.cart.add_to_cart(product, request.quantity, variation, add_ons)
    return CartMutationResponse(
        success=result.success,
        message=result.message,
        line_id=result.item.id if result.item else None,
    )


@app.post("/cart/update", response_model=CartMutationResponse)
async def update_cart_quantity(
    request: UpdateQuantityRequest, session: CheckoutSession = Depends(get_session)
):
    result = session.cart.update_quantity(request.line_id, request.quantity)
    return CartMutationResponse(success=result.success, message=result.message, line_id=request.line_id)


@app.post("/cart/remove", response_model=CartMutationResponse)
async def remove_from_cart(
    request: RemoveFromCartRequest, session: CheckoutSession = Depends(get_session)
):
    """Remove a line from the cart."""
    if session.cart.remove_from_cart(request.line_id):
        return CartMutationResponse(success=True, message=f"Removed line {request.line_id} from cart")
    return CartMutationResponse(success=False, message=f"Line {request.line_id} is not in the cart")


@app.post("/cart/clear")
async def clear_cart(session: CheckoutSession = Depends(get_session)):
    session.cart.clear_cart()
    return {"success": True, "message": "Cart cleared"}


# Checkout endpoints
@app.get("/shipping-methods")
async def list_shipping_methods():
    methods = await storefront_client.get_shipping_methods()
    return {"shipping_methods": [method.model_dump(mode="json") for method in methods]}


@app.get("/payment-methods")
async def list_payment_methods():
    methods = await storefront_client.get_payment_methods()
    return {"payment_methods": [method.model_dump(mode="json") for method in methods]}


@app.post("/voucher/apply")
async def apply_voucher(request: VoucherRequest, session: CheckoutSession = Depends(get_session)):
    result = await session.apply_voucher(request.code)
    if not result.ok:
        return {"success": False, "message": result.error}
    return {
        "success": True,
        "message": f"Voucher {result.voucher.code} applied",
        "discount": str(result.discount),
        "total": str(session.total),
    }


@app.post("/voucher/remove")
async def remove_voucher(session: CheckoutSession = Depends(get_session)):
    session.remove_voucher()
    return {"success": True, "message": "Voucher removed"}


@app.post("/checkout/details")
async def set_checkout_details(
    request: CheckoutDetailsRequest, session: CheckoutSession = Depends(get_session)
):
    shipping_methods = await storefront_client.get_shipping_methods()
    shipping = next((m for m in shipping_methods if m.id == request.shipping_method_id), None)
    if shipping is None:
        raise HTTPException(status_code=400, detail=f"Unknown shipping method {request.shipping_method_id}")

    payment_methods = await storefront_client.get_payment_methods()
    payment = next((m for m in payment_methods if m.id == request.payment_method_id), None)
    if payment is None:
        raise HTTPException(status_code=400, detail=f"Unknown payment method {request.payment_method_id}")

    session.set_customer_details(
        CustomerDetails(
            customer_name=request.customer_name,
            contact_number=request.contact_number,
            email=request.email,
            shipping_address=request.shipping_address,
        )
    )
    session.select_shipping_method(shipping)
    session.select_payment_method(payment)
    session.set_notes(request.notes)
    return {"success": True, "missing": session.missing_details(), "total": str(session.total)}


@app.post("/checkout/place-order")
async def place_order(session: CheckoutSession = Depends(get_session)):
    """Persist the order and return the Messenger hand-off link."""
    handoff = await session.finalize_order()
    product_catalog.invalidate()
    return handoff.model_dump(mode="json")


# Admin endpoints
@app.post("/admin/login")
async def admin_login(request: AdminLoginRequest):
    if auth_manager.login(request.password):
        return {"success": True, "message": "Admin access granted"}
    raise HTTPException(status_code=401, detail="Incorrect password")


@app.post("/admin/logout")
async def admin_logout():
    auth_manager.logout()
    return {"success": True, "message": "Successfully logged out"}


@app.get("/admin/orders")
async def admin_list_orders(include_items: bool = False):
    require_admin()
    orders = await storefront_client.get_orders(include_items=include_items)
    return {
        "count": len(orders),
        "orders": [order.model_dump(mode="json") for order in orders],
    }


@app.get("/admin/orders/{order_id}")
async def admin_get_order(order_id: str):
    require_admin()
    order = await storefront_client.get_order_details(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return order.model_dump(mode="json")


@app.post("/admin/orders/{order_id}/status")
async def admin_update_order_status(order_id: str, request: OrderStatusRequest):
    require_admin()
    await storefront_client.update_order_status(order_id, request.status)
    return {"success": True, "message": f"Order {order_id} is now {request.status.value}"}


def run_http_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Run the HTTP server."""
    import uvicorn

    if reload:
        uvicorn.run("storefront_server.http_server:app", host=host, port=port, reload=True, log_level="info")
    else:
        uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    run_http_server()
