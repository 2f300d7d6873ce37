"""FastAPI application: POS REST API and live query WebSocket."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request, WebSocket
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.status import WS_1008_POLICY_VIOLATION
from pydantic import ValidationError

from restaurant_pos_service.auth.api_dependencies import RequestContext, get_request_context
from restaurant_pos_service.auth.api_key_validator import APIKeyValidator
from restaurant_pos_service.auth.roles import SUPERVISOR_ROLES, require_role
from restaurant_pos_service.exceptions import (
    BackendUnavailableError,
    CategoryCycleError,
    ConcurrentModificationError,
    ConfirmationRequiredError,
    EmptyOrderError,
    InvalidPaymentError,
    InvalidTransitionError,
    MissingContextError,
    NotFoundError,
    PermissionDeniedError,
    POSError,
    UnpaidOrderError,
)
from restaurant_pos_service.handlers.api_models import (
    CartAddRequest,
    CartQuantityRequest,
    CartResponse,
    CatalogItemCreateRequest,
    CatalogItemUpdateRequest,
    CategoryCreateRequest,
    CategoryOverview,
    CategoryUpdateRequest,
    CheckoutRequest,
    HealthResponse,
    InvoiceCreateRequest,
    InvoiceStatusRequest,
    OrderStatusRequest,
    PaymentRequest,
    TableStatusRequest,
)
from restaurant_pos_service.models.catalog_models import Category, CategoryType, ItemType
from restaurant_pos_service.models.document_models import utc_now
from restaurant_pos_service.models.invoice_models import DocumentKind, Invoice, InvoiceStatus
from restaurant_pos_service.models.order_models import (
    Customer,
    Order,
    OrderPayment,
    OrderStatus,
    OrderType,
    PaymentType,
    Table,
)
from restaurant_pos_service.models.settings_models import StoreSettings
from restaurant_pos_service.services.catalog_service import CatalogService
from restaurant_pos_service.services.invoice_service import InvoiceService
from restaurant_pos_service.services.live_query import LiveQueryCache, Snapshot
from restaurant_pos_service.services.order_service import OrderService
from restaurant_pos_service.services.print_projection import project_invoice, project_order
from restaurant_pos_service.services.report_service import ReportService, SalesSummary
from restaurant_pos_service.services.store_service import StoreService

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[type[POSError], int] = {
    EmptyOrderError: 400,
    MissingContextError: 400,
    ConfirmationRequiredError: 400,
    InvalidPaymentError: 400,
    CategoryCycleError: 400,
    PermissionDeniedError: 403,
    NotFoundError: 404,
    InvalidTransitionError: 409,
    UnpaidOrderError: 409,
    ConcurrentModificationError: 409,
    BackendUnavailableError: 503,
}

# URL segment -> collection name of the store configuration records
STORE_RECORD_PATHS = {
    "tables": Table.collection,
    "customers": Customer.collection,
    "payment-types": PaymentType.collection,
    "order-types": OrderType.collection,
}

ORG = "/orgs/{organization_id}"


def error_response(error: POSError) -> JSONResponse:
    """JSON error body for a domain error."""
    status_code = ERROR_STATUS_CODES.get(type(error), 400)
    content: dict[str, Any] = {"detail": str(error), "error": type(error).__name__}
    if isinstance(error, BackendUnavailableError):
        content["retryable"] = True
        logger.error(f"Backend unavailable: {error}")
    return JSONResponse(status_code=status_code, content=content)


def create_app(
    catalog_service: CatalogService,
    store_service: StoreService,
    order_service: OrderService,
    invoice_service: InvoiceService,
    report_service: ReportService,
    live_queries: LiveQueryCache,
    api_keys: dict[str, str],
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        catalog_service: Categories, products and services
        store_service: Tables, customers, payment/order types and settings
        order_service: Cart, checkout, orders and order payments
        invoice_service: Invoices, quotes and invoice payments
        report_service: Sales reports
        live_queries: Cache backing the live query WebSocket
        api_keys: Mapping of API key to the organization it is bound to

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Restaurant POS Service API",
        description="Point of sale, orders and invoicing for restaurants",
        version="1.0.0",
    )

    # Store services in app state for access in route handlers
    app.state.catalog_service = catalog_service
    app.state.store_service = store_service
    app.state.order_service = order_service
    app.state.invoice_service = invoice_service
    app.state.report_service = report_service
    app.state.live_queries = live_queries
    app.state.api_key_validator = APIKeyValidator(api_keys=api_keys)

    @app.exception_handler(POSError)
    async def handle_pos_error(_request: Request, exc: POSError) -> JSONResponse:
        return error_response(exc)

    @app.exception_handler(ValidationError)
    async def handle_validation_error(_request: Request, exc: ValidationError) -> JSONResponse:
        errors = exc.errors(include_url=False, include_context=False)
        return JSONResponse(status_code=422, content={"detail": jsonable_encoder(errors)})

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy")

    # Categories

    @app.get(f"{ORG}/categories", response_model=list[Category], tags=["Catalog"])
    async def list_categories(
        category_type: CategoryType | None = Query(default=None, alias="type"),
        ctx: RequestContext = Depends(get_request_context),
    ) -> list[Category]:
        categories: list[Category] = await app.state.catalog_service.list_categories(
            ctx.organization_id, category_type
        )
        return categories

    @app.get(f"{ORG}/categories/browse", response_model=list[CategoryOverview], tags=["Catalog"])
    async def browse_categories(
        parent_id: str | None = None,
        item_type: ItemType | None = None,
        ctx: RequestContext = Depends(get_request_context),
    ) -> list[dict[str, Any]]:
        """Children of a category (roots when no parent) with level, path and counts."""
        overview: list[dict[str, Any]] = await app.state.catalog_service.browse(
            ctx.organization_id, parent_id, item_type
        )
        return overview

    @app.post(f"{ORG}/categories", status_code=201, tags=["Catalog"])
    async def create_category(
        body: CategoryCreateRequest, ctx: RequestContext = Depends(get_request_context)
    ) -> Category:
        category: Category = await app.state.catalog_service.create_category(
            ctx.organization_id,
            body.name,
            category_type=body.type,
            description=body.description,
            parent_id=body.parent_id,
        )
        return category

    @app.patch(f"{ORG}/categories/{{category_id}}", tags=["Catalog"])
    async def update_category(
        category_id: str,
        body: CategoryUpdateRequest,
        ctx: RequestContext = Depends(get_request_context),
    ) -> Category:
        category: Category = await app.state.catalog_service.update_category(
            ctx.organization_id, category_id, body.model_dump(exclude_unset=True)
        )
        return category

    @app.delete(f"{ORG}/categories/{{category_id}}", status_code=204, tags=["Catalog"])
    async def delete_category(
        category_id: str, ctx: RequestContext = Depends(get_request_context)
    ) -> None:
        await app.state.catalog_service.delete_category(ctx.organization_id, category_id)

    # Products and services

    def register_catalog_items(path: str, item_type: ItemType) -> None:
        @app.get(f"{ORG}/{path}", tags=["Catalog"], name=f"list_{path}")
        async def list_items(
            category_id: str | None = None,
            ctx: RequestContext = Depends(get_request_context),
        ) -> list[Any]:
            if item_type is ItemType.PRODUCT:
                return await app.state.catalog_service.list_products(  # type: ignore[no-any-return]
                    ctx.organization_id, category_id
                )
            return await app.state.catalog_service.list_services(  # type: ignore[no-any-return]
                ctx.organization_id, category_id
            )

        @app.post(f"{ORG}/{path}", status_code=201, tags=["Catalog"], name=f"create_{path}")
        async def create_item(
            body: CatalogItemCreateRequest, ctx: RequestContext = Depends(get_request_context)
        ) -> Any:
            if item_type is ItemType.PRODUCT:
                return await app.state.catalog_service.create_product(
                    ctx.organization_id,
                    body.name,
                    body.price,
                    description=body.description,
                    category_id=body.category_id,
                    variations=[v.model_dump() for v in body.variations],
                )
            return await app.state.catalog_service.create_service(
                ctx.organization_id,
                body.name,
                body.price,
                description=body.description,
                category_id=body.category_id,
            )

        @app.patch(f"{ORG}/{path}/{{item_id}}", tags=["Catalog"], name=f"update_{path}")
        async def update_item(
            item_id: str,
            body: CatalogItemUpdateRequest,
            ctx: RequestContext = Depends(get_request_context),
        ) -> Any:
            return await app.state.catalog_service.update_item(
                ctx.organization_id, item_type, item_id, body.model_dump(exclude_unset=True)
            )

        @app.delete(
            f"{ORG}/{path}/{{item_id}}", status_code=204, tags=["Catalog"], name=f"delete_{path}"
        )
        async def delete_item(
            item_id: str, ctx: RequestContext = Depends(get_request_context)
        ) -> None:
            await app.state.catalog_service.delete_item(ctx.organization_id, item_type, item_id)

    register_catalog_items("products", ItemType.PRODUCT)
    register_catalog_items("services", ItemType.SERVICE)

    # Tables, customers, payment types, order types

    def register_store_records(path: str, collection: str) -> None:
        @app.get(f"{ORG}/{path}", tags=["Store"], name=f"list_{collection}")
        async def list_records(ctx: RequestContext = Depends(get_request_context)) -> list[Any]:
            return await app.state.store_service.list_records(  # type: ignore[no-any-return]
                ctx.organization_id, collection
            )

        @app.get(f"{ORG}/{path}/{{record_id}}", tags=["Store"], name=f"get_{collection}")
        async def get_record(
            record_id: str, ctx: RequestContext = Depends(get_request_context)
        ) -> Any:
            return await app.state.store_service.get_record(
                ctx.organization_id, collection, record_id
            )

        @app.post(f"{ORG}/{path}", status_code=201, tags=["Store"], name=f"create_{collection}")
        async def create_record(
            body: dict[str, Any], ctx: RequestContext = Depends(get_request_context)
        ) -> Any:
            return await app.state.store_service.create_record(
                ctx.organization_id, collection, body
            )

        @app.patch(f"{ORG}/{path}/{{record_id}}", tags=["Store"], name=f"update_{collection}")
        async def update_record(
            record_id: str,
            body: dict[str, Any],
            ctx: RequestContext = Depends(get_request_context),
        ) -> Any:
            return await app.state.store_service.update_record(
                ctx.organization_id, collection, record_id, body
            )

        @app.delete(
            f"{ORG}/{path}/{{record_id}}",
            status_code=204,
            tags=["Store"],
            name=f"delete_{collection}",
        )
        async def delete_record(
            record_id: str, ctx: RequestContext = Depends(get_request_context)
        ) -> None:
            await app.state.store_service.delete_record(ctx.organization_id, collection, record_id)

    for path, collection in STORE_RECORD_PATHS.items():
        register_store_records(path, collection)

    @app.put(f"{ORG}/tables/{{table_id}}/status", tags=["Store"])
    async def set_table_status(
        table_id: str, body: TableStatusRequest, ctx: RequestContext = Depends(get_request_context)
    ) -> Table:
        table: Table = await app.state.store_service.set_table_status(
            ctx.organization_id, table_id, body.status
        )
        return table

    @app.get(f"{ORG}/settings", tags=["Store"])
    async def get_settings(ctx: RequestContext = Depends(get_request_context)) -> StoreSettings:
        settings: StoreSettings = await app.state.store_service.get_settings(ctx.organization_id)
        return settings

    @app.patch(f"{ORG}/settings", tags=["Store"])
    async def update_settings(
        body: dict[str, Any], ctx: RequestContext = Depends(get_request_context)
    ) -> StoreSettings:
        require_role(ctx.role, SUPERVISOR_ROLES, "change store settings")
        settings: StoreSettings = await app.state.store_service.update_settings(
            ctx.organization_id, body
        )
        return settings

    # Cart and checkout

    @app.get(f"{ORG}/cart", response_model=CartResponse, tags=["Cart"])
    async def get_cart(ctx: RequestContext = Depends(get_request_context)) -> CartResponse:
        return CartResponse.from_summary(
            app.state.order_service.get_cart(ctx.organization_id, ctx.user_id)
        )

    @app.post(f"{ORG}/cart/items", response_model=CartResponse, tags=["Cart"])
    async def add_to_cart(
        body: CartAddRequest, ctx: RequestContext = Depends(get_request_context)
    ) -> CartResponse:
        try:
            summary = await app.state.order_service.add_to_cart(
                ctx.organization_id,
                ctx.user_id,
                body.type,
                body.item_id,
                quantity=body.quantity,
                variation_id=body.variation_id,
                notes=body.notes,
            )
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        return CartResponse.from_summary(summary)

    @app.patch(f"{ORG}/cart/items/{{line_id}}", response_model=CartResponse, tags=["Cart"])
    async def update_cart_quantity(
        line_id: str, body: CartQuantityRequest, ctx: RequestContext = Depends(get_request_context)
    ) -> CartResponse:
        """Set a line's quantity; zero or less removes the line."""
        return CartResponse.from_summary(
            app.state.order_service.update_cart_quantity(
                ctx.organization_id, ctx.user_id, line_id, body.quantity
            )
        )

    @app.delete(f"{ORG}/cart/items/{{line_id}}", response_model=CartResponse, tags=["Cart"])
    async def remove_from_cart(
        line_id: str, ctx: RequestContext = Depends(get_request_context)
    ) -> CartResponse:
        return CartResponse.from_summary(
            app.state.order_service.remove_from_cart(ctx.organization_id, ctx.user_id, line_id)
        )

    @app.delete(f"{ORG}/cart", response_model=CartResponse, tags=["Cart"])
    async def clear_cart(
        confirm: bool = False, ctx: RequestContext = Depends(get_request_context)
    ) -> CartResponse:
        """Empty the cart; requires ``confirm=true``."""
        return CartResponse.from_summary(
            app.state.order_service.clear_cart(ctx.organization_id, ctx.user_id, confirmed=confirm)
        )

    @app.post(f"{ORG}/checkout", status_code=201, tags=["Orders"])
    async def checkout(
        body: CheckoutRequest, ctx: RequestContext = Depends(get_request_context)
    ) -> Order:
        logger.info(f"Checkout by {ctx.user_id} in organization {ctx.organization_id}")
        order: Order = await app.state.order_service.checkout(
            ctx.organization_id,
            ctx.user_id,
            ctx.user_name,
            order_type=body.order_type,
            table_id=body.table_id,
            customer_id=body.customer_id,
            notes=body.notes,
            include_qr=body.include_qr,
        )
        return order

    # Orders

    @app.get(f"{ORG}/orders", response_model=list[Order], tags=["Orders"])
    async def list_orders(
        status: OrderStatus | None = None, ctx: RequestContext = Depends(get_request_context)
    ) -> list[Order]:
        orders: list[Order] = await app.state.order_service.list_orders(ctx.organization_id, status)
        return orders

    @app.get(f"{ORG}/orders/{{order_id}}", tags=["Orders"])
    async def get_order(order_id: str, ctx: RequestContext = Depends(get_request_context)) -> Order:
        order: Order = await app.state.order_service.get_order(ctx.organization_id, order_id)
        return order

    @app.put(f"{ORG}/orders/{{order_id}}/status", tags=["Orders"])
    async def update_order_status(
        order_id: str, body: OrderStatusRequest, ctx: RequestContext = Depends(get_request_context)
    ) -> Order:
        order: Order = await app.state.order_service.update_status(
            organization_id=ctx.organization_id,
            order_id=order_id,
            target=body.status,
            role=ctx.role,
        )
        return order

    @app.post(f"{ORG}/orders/{{order_id}}/mark-paid", tags=["Orders"])
    async def mark_order_paid(
        order_id: str, ctx: RequestContext = Depends(get_request_context)
    ) -> Order:
        order: Order = await app.state.order_service.mark_paid(ctx.organization_id, order_id)
        return order

    @app.delete(f"{ORG}/orders/{{order_id}}", status_code=204, tags=["Orders"])
    async def delete_order(
        order_id: str, ctx: RequestContext = Depends(get_request_context)
    ) -> None:
        require_role(ctx.role, SUPERVISOR_ROLES, "delete orders")
        await app.state.order_service.delete_order(ctx.organization_id, order_id)

    @app.get(
        f"{ORG}/orders/{{order_id}}/payments", response_model=list[OrderPayment], tags=["Orders"]
    )
    async def list_order_payments(
        order_id: str, ctx: RequestContext = Depends(get_request_context)
    ) -> list[OrderPayment]:
        payments: list[OrderPayment] = await app.state.order_service.list_payments(
            ctx.organization_id, order_id
        )
        return payments

    @app.post(f"{ORG}/orders/{{order_id}}/payments", status_code=201, tags=["Orders"])
    async def add_order_payment(
        order_id: str, body: PaymentRequest, ctx: RequestContext = Depends(get_request_context)
    ) -> OrderPayment:
        payment: OrderPayment = await app.state.order_service.add_payment(
            organization_id=ctx.organization_id,
            order_id=order_id,
            amount=body.amount,
            payment_method=body.payment_method,
            reference=body.reference,
            notes=body.notes,
        )
        return payment

    @app.delete(
        f"{ORG}/orders/{{order_id}}/payments/{{payment_id}}", status_code=204, tags=["Orders"]
    )
    async def remove_order_payment(
        order_id: str, payment_id: str, ctx: RequestContext = Depends(get_request_context)
    ) -> None:
        await app.state.order_service.remove_payment(ctx.organization_id, order_id, payment_id)

    @app.get(f"{ORG}/orders/{{order_id}}/print", tags=["Orders"])
    async def print_order(
        order_id: str, ctx: RequestContext = Depends(get_request_context)
    ) -> dict[str, Any]:
        """Flat receipt data for the print templates."""
        order = await app.state.order_service.get_order(ctx.organization_id, order_id)
        payments = await app.state.order_service.list_payments(ctx.organization_id, order_id)
        settings = await app.state.store_service.get_settings(ctx.organization_id)
        return project_order(order, payments, settings)

    # Invoices and quotes

    @app.post(f"{ORG}/invoices", status_code=201, tags=["Invoices"])
    async def create_invoice(
        body: InvoiceCreateRequest, ctx: RequestContext = Depends(get_request_context)
    ) -> Invoice:
        invoice: Invoice = await app.state.invoice_service.create_document(
            ctx.organization_id,
            body.kind,
            body.client_name,
            [line.model_dump() for line in body.items],
            due_date=body.due_date,
            client_email=body.client_email,
            client_address=body.client_address,
            client_vat=body.client_vat,
            customer_id=body.customer_id,
            notes=body.notes,
            include_qr=body.include_qr,
        )
        return invoice

    @app.get(f"{ORG}/invoices", response_model=list[Invoice], tags=["Invoices"])
    async def list_invoices(
        kind: DocumentKind | None = None,
        status: InvoiceStatus | None = None,
        ctx: RequestContext = Depends(get_request_context),
    ) -> list[Invoice]:
        invoices: list[Invoice] = await app.state.invoice_service.list_documents(
            ctx.organization_id, kind, status
        )
        return invoices

    @app.get(f"{ORG}/invoices/{{invoice_id}}", tags=["Invoices"])
    async def get_invoice(
        invoice_id: str, ctx: RequestContext = Depends(get_request_context)
    ) -> Invoice:
        invoice: Invoice = await app.state.invoice_service.get_document(
            ctx.organization_id, invoice_id
        )
        return invoice

    @app.put(f"{ORG}/invoices/{{invoice_id}}/status", tags=["Invoices"])
    async def update_invoice_status(
        invoice_id: str,
        body: InvoiceStatusRequest,
        ctx: RequestContext = Depends(get_request_context),
    ) -> Invoice:
        invoice: Invoice = await app.state.invoice_service.update_status(
            organization_id=ctx.organization_id, invoice_id=invoice_id, target=body.status
        )
        return invoice

    @app.post(f"{ORG}/invoices/{{invoice_id}}/convert", status_code=201, tags=["Invoices"])
    async def convert_quote(
        invoice_id: str, ctx: RequestContext = Depends(get_request_context)
    ) -> Invoice:
        """Create a draft invoice from a quote."""
        invoice: Invoice = await app.state.invoice_service.convert_quote(
            ctx.organization_id, invoice_id
        )
        return invoice

    @app.get(
        f"{ORG}/invoices/{{invoice_id}}/payments",
        response_model=list[OrderPayment],
        tags=["Invoices"],
    )
    async def list_invoice_payments(
        invoice_id: str, ctx: RequestContext = Depends(get_request_context)
    ) -> list[OrderPayment]:
        payments: list[OrderPayment] = await app.state.invoice_service.list_payments(
            ctx.organization_id, invoice_id
        )
        return payments

    @app.post(f"{ORG}/invoices/{{invoice_id}}/payments", status_code=201, tags=["Invoices"])
    async def add_invoice_payment(
        invoice_id: str, body: PaymentRequest, ctx: RequestContext = Depends(get_request_context)
    ) -> OrderPayment:
        payment: OrderPayment = await app.state.invoice_service.add_payment(
            organization_id=ctx.organization_id,
            invoice_id=invoice_id,
            amount=body.amount,
            payment_method=body.payment_method,
            reference=body.reference,
            notes=body.notes,
        )
        return payment

    @app.delete(
        f"{ORG}/invoices/{{invoice_id}}/payments/{{payment_id}}", status_code=204, tags=["Invoices"]
    )
    async def remove_invoice_payment(
        invoice_id: str, payment_id: str, ctx: RequestContext = Depends(get_request_context)
    ) -> None:
        await app.state.invoice_service.remove_payment(ctx.organization_id, invoice_id, payment_id)

    @app.get(f"{ORG}/invoices/{{invoice_id}}/print", tags=["Invoices"])
    async def print_invoice(
        invoice_id: str, ctx: RequestContext = Depends(get_request_context)
    ) -> dict[str, Any]:
        invoice = await app.state.invoice_service.get_document(ctx.organization_id, invoice_id)
        payments = await app.state.invoice_service.list_payments(ctx.organization_id, invoice_id)
        settings = await app.state.store_service.get_settings(ctx.organization_id)
        return project_invoice(invoice, payments, settings)

    # Reports

    @app.get(f"{ORG}/reports/sales", tags=["Reports"])
    async def sales_report(
        start: datetime | None = None,
        end: datetime | None = None,
        ctx: RequestContext = Depends(get_request_context),
    ) -> SalesSummary:
        """Sales summary for ``[start, end)``, defaulting to the last 24 hours."""
        end = end or utc_now()
        start = start or end - timedelta(days=1)
        if start >= end:
            raise HTTPException(status_code=422, detail="start must be before end")
        summary: SalesSummary = await app.state.report_service.sales_summary(
            ctx.organization_id, start, end
        )
        return summary

    # Live queries

    @app.websocket("/ws/orgs/{organization_id}/{collection}")
    async def live_query_socket(
        websocket: WebSocket, organization_id: str, collection: str
    ) -> None:
        """Push the collection's snapshot on connect and after every write.

        The API key is read from the ``X-API-Key`` header or the ``api_key``
        query parameter. Closing the socket closes the subscription.
        """
        api_key = websocket.headers.get("x-api-key") or websocket.query_params.get("api_key")
        validator: APIKeyValidator = app.state.api_key_validator
        if not api_key or not validator.authorizes(api_key, organization_id):
            await websocket.close(code=WS_1008_POLICY_VIOLATION)
            return
        if not app.state.live_queries.can_watch(collection):
            await websocket.close(code=WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()
        loop = asyncio.get_running_loop()
        updates: asyncio.Queue[Snapshot] = asyncio.Queue()

        def listener(snapshot: Snapshot) -> None:
            loop.call_soon_threadsafe(updates.put_nowait, snapshot)

        handle = app.state.live_queries.open(organization_id, collection, listener)
        receive = asyncio.ensure_future(websocket.receive())
        try:
            while True:
                update = asyncio.ensure_future(updates.get())
                done, _ = await asyncio.wait(
                    {receive, update}, return_when=asyncio.FIRST_COMPLETED
                )
                if update in done:
                    await websocket.send_json(
                        {"collection": collection, "documents": update.result()}
                    )
                else:
                    update.cancel()
                if receive in done:
                    if receive.result()["type"] == "websocket.disconnect":
                        break
                    receive = asyncio.ensure_future(websocket.receive())
        finally:
            receive.cancel()
            app.state.live_queries.close(handle)
            logger.debug(f"Live query socket closed for {collection} in {organization_id}")

    return app
