"""Repository for invoices and quotes."""

import logging

from botocore.exceptions import ClientError

from restaurant_pos_service.exceptions import ConcurrentModificationError
from restaurant_pos_service.models.invoice_models import Invoice, InvoiceStatus
from restaurant_pos_service.repositories.collection_repository import CollectionRepository
from restaurant_pos_service.repositories.document_store import UpdateBuilder, sort_key

logger = logging.getLogger(__name__)


class InvoiceRepository(CollectionRepository[Invoice]):
    model = Invoice

    def update_status(
        self,
        organization_id: str,
        invoice_id: str,
        expected: InvoiceStatus,
        target: InvoiceStatus,
    ) -> Invoice:
        """Change status only if it is still ``expected``.

        Raises:
            NotFoundError: If the invoice does not exist
            ConcurrentModificationError: If the status changed since it was read
        """
        builder = UpdateBuilder().set("status", target)
        condition = f"{builder.name('status')} = {builder.value('expected', expected)}"
        item = self.store.update(
            organization_id, sort_key(self.collection, invoice_id), builder, condition
        )
        logger.info(f"Invoice {invoice_id} moved from {expected.value} to {target.value}")
        return Invoice.from_dynamodb_item(item)

    def convert(self, quote: Invoice, invoice: Invoice) -> None:
        """Write ``invoice`` and mark ``quote`` converted in one transaction.

        The quote update is conditional on its status still being the one it
        was read with, so a quote is converted at most once.

        Raises:
            ConcurrentModificationError: If the quote changed or was converted meanwhile
        """
        builder = (
            UpdateBuilder()
            .set("status", InvoiceStatus.CONVERTED)
            .set("converted_invoice_id", invoice.id)
        )
        condition = f"{builder.name('status')} = {builder.value('expected', quote.status)}"
        actions = [
            self.store.put_action(invoice),
            self.store.update_action(quote.organization_id, quote.sort_key, builder, condition),
        ]
        try:
            self.store.transact(actions)
        except ClientError as e:
            raise ConcurrentModificationError(
                f"Quote {quote.invoice_number} changed while converting"
            ) from e
        logger.info(f"Quote {quote.id} converted into invoice {invoice.id}")
