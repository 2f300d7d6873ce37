"""Store configuration: tables, customers, payment types, order types and settings."""

import logging
from typing import Any

from restaurant_pos_service.models.document_models import DocumentModel
from restaurant_pos_service.models.order_models import (
    Customer,
    OrderType,
    PaymentType,
    Table,
    TableStatus,
)
from restaurant_pos_service.models.settings_models import SETTINGS_DOCUMENT_ID, StoreSettings
from restaurant_pos_service.observability import traced
from restaurant_pos_service.repositories.catalog_repositories import (
    CustomerRepository,
    OrderTypeRepository,
    PaymentTypeRepository,
    SettingsRepository,
)
from restaurant_pos_service.repositories.collection_repository import (
    SERVER_FIELDS,
    CollectionRepository,
)
from restaurant_pos_service.repositories.order_repositories import TableRepository
from restaurant_pos_service.services.catalog_service import new_id
from restaurant_pos_service.services.live_query import LiveQueryCache

logger = logging.getLogger(__name__)

ID_PREFIXES = {
    Table.collection: "tbl",
    Customer.collection: "cus",
    PaymentType.collection: "pt",
    OrderType.collection: "ot",
}


class StoreService:
    """CRUD for the per-organization records that configure checkout."""

    def __init__(
        self,
        table_repository: TableRepository,
        customer_repository: CustomerRepository,
        payment_type_repository: PaymentTypeRepository,
        order_type_repository: OrderTypeRepository,
        settings_repository: SettingsRepository,
        live_queries: LiveQueryCache | None = None,
    ) -> None:
        self.table_repository = table_repository
        self.settings_repository = settings_repository
        self.live_queries = live_queries
        self.repositories: dict[str, CollectionRepository[Any]] = {
            Table.collection: table_repository,
            Customer.collection: customer_repository,
            PaymentType.collection: payment_type_repository,
            OrderType.collection: order_type_repository,
        }

    def _repository(self, collection: str) -> CollectionRepository[Any]:
        try:
            return self.repositories[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}") from None

    def _changed(self, organization_id: str, collection: str) -> None:
        if self.live_queries is not None:
            self.live_queries.notify(organization_id, collection)

    async def list_records(self, organization_id: str, collection: str) -> list[DocumentModel]:
        records = self._repository(collection).list_for_organization(organization_id)
        return sorted(records, key=lambda r: getattr(r, "name", r.id).lower())

    async def get_record(
        self, organization_id: str, collection: str, record_id: str
    ) -> DocumentModel:
        return self._repository(collection).require(organization_id, record_id)

    @traced("store.create_record")
    async def create_record(
        self, organization_id: str, collection: str, fields: dict[str, Any]
    ) -> DocumentModel:
        """Create a table, customer, payment type or order type.

        Args:
            organization_id: Owning organization
            collection: Target collection name
            fields: Model fields, validated by the collection's model

        Raises:
            ValueError: If the collection is unknown
            pydantic.ValidationError: If the fields are invalid
        """
        repository = self._repository(collection)
        fields = {k: v for k, v in fields.items() if k not in SERVER_FIELDS}
        record = repository.model(
            **fields,
            id=new_id(ID_PREFIXES[collection]),
            organization_id=organization_id,
        )
        repository.create(record)
        self._changed(organization_id, collection)
        return record

    async def update_record(
        self, organization_id: str, collection: str, record_id: str, fields: dict[str, Any]
    ) -> DocumentModel:
        """Change fields of a record; nothing is written unless the result is valid.

        Raises:
            ValueError: If the collection is unknown
            NotFoundError: If the record does not exist
            pydantic.ValidationError: If the changed record is invalid
        """
        record = self._repository(collection).update(organization_id, record_id, fields)
        self._changed(organization_id, collection)
        return record

    async def delete_record(self, organization_id: str, collection: str, record_id: str) -> None:
        repository = self._repository(collection)
        repository.require(organization_id, record_id)
        repository.delete(organization_id, record_id)
        self._changed(organization_id, collection)

    async def set_table_status(
        self, organization_id: str, table_id: str, status: TableStatus
    ) -> Table:
        """Manually set a table's status (reserved, maintenance...)."""
        table = self.table_repository.set_status(organization_id, table_id, status)
        self._changed(organization_id, Table.collection)
        return table

    async def get_settings(self, organization_id: str) -> StoreSettings:
        return self.settings_repository.get_settings(organization_id)

    @traced("store.update_settings")
    async def update_settings(self, organization_id: str, fields: dict[str, Any]) -> StoreSettings:
        """Merge ``fields`` into the organization's settings and save them."""
        current = self.settings_repository.get_settings(organization_id)
        updated = StoreSettings.model_validate(
            {
                **current.model_dump(),
                **fields,
                "id": SETTINGS_DOCUMENT_ID,
                "organization_id": organization_id,
            }
        )
        self.settings_repository.save(updated)
        logger.info(
            f"Updated settings for {organization_id}: vat {updated.effective_vat_rate}% "
            f"({updated.pricing_mode.value})"
        )
        self._changed(organization_id, StoreSettings.collection)
        return updated
