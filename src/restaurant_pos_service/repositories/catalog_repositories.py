"""Repositories for catalog and store configuration documents."""

from restaurant_pos_service.models.catalog_models import Category, Product, Service
from restaurant_pos_service.models.order_models import Customer, OrderType, PaymentType
from restaurant_pos_service.models.settings_models import SETTINGS_DOCUMENT_ID, StoreSettings
from restaurant_pos_service.repositories.collection_repository import CollectionRepository


class CategoryRepository(CollectionRepository[Category]):
    model = Category


class ProductRepository(CollectionRepository[Product]):
    model = Product


class ServiceRepository(CollectionRepository[Service]):
    model = Service


class CustomerRepository(CollectionRepository[Customer]):
    model = Customer


class PaymentTypeRepository(CollectionRepository[PaymentType]):
    model = PaymentType


class OrderTypeRepository(CollectionRepository[OrderType]):
    model = OrderType


class SettingsRepository(CollectionRepository[StoreSettings]):
    """Single settings document per organization."""

    model = StoreSettings

    def get_settings(self, organization_id: str) -> StoreSettings:
        """Stored settings, or defaults when the organization has none yet."""
        settings = self.get(organization_id, SETTINGS_DOCUMENT_ID)
        if settings is None:
            return StoreSettings(organization_id=organization_id)
        return settings
