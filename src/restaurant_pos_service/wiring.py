"""Construction of repositories and services over one document store."""

import logging
from dataclasses import dataclass

from restaurant_pos_service.models.catalog_models import Category, Product, Service
from restaurant_pos_service.models.invoice_models import Invoice
from restaurant_pos_service.models.order_models import (
    Customer,
    Order,
    OrderPayment,
    OrderType,
    PaymentType,
    Table,
)
from restaurant_pos_service.models.settings_models import StoreSettings
from restaurant_pos_service.repositories.catalog_repositories import (
    CategoryRepository,
    CustomerRepository,
    OrderTypeRepository,
    PaymentTypeRepository,
    ProductRepository,
    ServiceRepository,
    SettingsRepository,
)
from restaurant_pos_service.repositories.document_store import DocumentStore
from restaurant_pos_service.repositories.invoice_repositories import InvoiceRepository
from restaurant_pos_service.repositories.order_repositories import (
    CartRepository,
    OrderRepository,
    PaymentRepository,
    TableRepository,
)
from restaurant_pos_service.services.catalog_service import CatalogService
from restaurant_pos_service.services.invoice_service import InvoiceService
from restaurant_pos_service.services.live_query import LiveQueryCache, RepositoryLoader
from restaurant_pos_service.services.order_service import OrderService
from restaurant_pos_service.services.report_service import ReportService
from restaurant_pos_service.services.store_service import StoreService

logger = logging.getLogger(__name__)

DEFAULT_TABLE_NAME = "restaurant-pos-data"


@dataclass
class Services:
    """Every service of the application, sharing one live query cache."""

    catalog_service: CatalogService
    store_service: StoreService
    order_service: OrderService
    invoice_service: InvoiceService
    report_service: ReportService
    live_queries: LiveQueryCache


def build_services(store: DocumentStore) -> Services:
    """Create repositories and services over ``store``.

    Args:
        store: Document store for the POS table

    Returns:
        Wired services
    """
    categories = CategoryRepository(store)
    products = ProductRepository(store)
    services = ServiceRepository(store)
    customers = CustomerRepository(store)
    payment_types = PaymentTypeRepository(store)
    order_types = OrderTypeRepository(store)
    settings = SettingsRepository(store)
    tables = TableRepository(store)
    orders = OrderRepository(store)
    payments = PaymentRepository(store)
    invoices = InvoiceRepository(store)

    live_queries = LiveQueryCache(
        RepositoryLoader(
            {
                Category.collection: categories,
                Product.collection: products,
                Service.collection: services,
                Customer.collection: customers,
                PaymentType.collection: payment_types,
                OrderType.collection: order_types,
                StoreSettings.collection: settings,
                Table.collection: tables,
                Order.collection: orders,
                OrderPayment.collection: payments,
                Invoice.collection: invoices,
            }
        )
    )

    catalog_service = CatalogService(categories, products, services, live_queries)
    store_service = StoreService(
        tables, customers, payment_types, order_types, settings, live_queries
    )
    order_service = OrderService(
        order_repository=orders,
        payment_repository=payments,
        table_repository=tables,
        customer_repository=customers,
        settings_repository=settings,
        catalog_service=catalog_service,
        cart_repository=CartRepository(store),
        live_queries=live_queries,
    )
    invoice_service = InvoiceService(invoices, payments, settings, live_queries)
    report_service = ReportService(orders, payments)

    logger.info(f"Services initialized over table {store.table_name}")
    return Services(
        catalog_service=catalog_service,
        store_service=store_service,
        order_service=order_service,
        invoice_service=invoice_service,
        report_service=report_service,
        live_queries=live_queries,
    )
