"""Typed repository over one collection of the document store."""

import logging
from typing import Any, Generic, TypeVar

from restaurant_pos_service.exceptions import NotFoundError
from restaurant_pos_service.models.document_models import SORT_KEY_SEPARATOR, DocumentModel
from restaurant_pos_service.repositories.document_store import (
    DocumentStore,
    UpdateBuilder,
    sort_key,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=DocumentModel)

# assigned by the service, never taken from a request body
SERVER_FIELDS = frozenset({"id", "organization_id", "created_at", "updated_at"})


class CollectionRepository(Generic[ModelT]):
    """CRUD for documents of a single model type.

    Reads of a missing id return None; mutations targeting a missing id raise
    ``NotFoundError``.
    """

    model: type[ModelT]

    def __init__(self, store: DocumentStore) -> None:
        """Initialize repository.

        Args:
            store: Document store shared by all repositories
        """
        self.store = store

    @property
    def collection(self) -> str:
        return self.model.collection

    def create(self, document: ModelT) -> ModelT:
        self.store.put(document, must_not_exist=True)
        logger.info(f"Created {self.collection} {document.id} for {document.organization_id}")
        return document

    def save(self, document: ModelT) -> ModelT:
        """Create or overwrite a document."""
        self.store.put(document)
        return document

    def get(self, organization_id: str, doc_id: str) -> ModelT | None:
        item = self.store.get(organization_id, sort_key(self.collection, doc_id))
        if item is None:
            return None
        return self.model.from_dynamodb_item(item)  # type: ignore[no-any-return]

    def require(self, organization_id: str, doc_id: str) -> ModelT:
        """Like ``get`` but raises ``NotFoundError`` for a missing id."""
        document = self.get(organization_id, doc_id)
        if document is None:
            raise NotFoundError(self.collection, doc_id)
        return document

    def list_for_organization(self, organization_id: str) -> list[ModelT]:
        items = self.store.query_prefix(organization_id, f"{self.collection}{SORT_KEY_SEPARATOR}")
        return [self.model.from_dynamodb_item(item) for item in items]

    def list_all(self) -> list[ModelT]:
        """Documents of this collection across all organizations."""
        items = self.store.scan_prefix(f"{self.collection}{SORT_KEY_SEPARATOR}")
        return [self.model.from_dynamodb_item(item) for item in items]

    def update(self, organization_id: str, doc_id: str, fields: dict[str, Any]) -> ModelT:
        """Set the given fields on an existing document.

        The document with the changes applied is validated by the model before
        anything is written. Server-assigned and unknown fields are ignored.

        Raises:
            NotFoundError: If the document does not exist
            pydantic.ValidationError: If the changed document is invalid
        """
        changes = {
            k: v
            for k, v in fields.items()
            if k in self.model.model_fields and k not in SERVER_FIELDS
        }
        current = self.require(organization_id, doc_id)
        merged = self.model.model_validate({**current.model_dump(), **changes})

        builder = UpdateBuilder()
        for field, value in merged.model_dump(include=set(changes)).items():
            builder.set(field, value)
        item = self.store.update(organization_id, sort_key(self.collection, doc_id), builder)
        return self.model.from_dynamodb_item(item)  # type: ignore[no-any-return]

    def delete(self, organization_id: str, doc_id: str) -> None:
        self.store.delete(organization_id, sort_key(self.collection, doc_id))
        logger.info(f"Deleted {self.collection} {doc_id} for {organization_id}")
