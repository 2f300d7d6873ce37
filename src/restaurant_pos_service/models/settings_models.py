"""Per-organization store settings."""

from decimal import Decimal

from pydantic import Field

from restaurant_pos_service.models.document_models import DocumentModel
from restaurant_pos_service.models.order_models import PricingMode

SETTINGS_DOCUMENT_ID = "store"


class StoreSettings(DocumentModel):
    """VAT, currency and checkout policy for one organization.

    There is exactly one settings document per organization, stored with the
    fixed id ``store``.
    """

    collection = "settings"

    id: str = SETTINGS_DOCUMENT_ID
    organization_name: str = ""
    organization_vat_number: str = ""
    vat_rate: Decimal = Field(default=Decimal("15"), ge=0, le=100)
    vat_enabled: bool = True
    vat_inclusive: bool = False
    currency: str = "SAR"
    locale: str = "ar-SA"
    require_table_for_dine_in: bool = False
    require_customer: bool = False

    @property
    def effective_vat_rate(self) -> Decimal:
        return self.vat_rate if self.vat_enabled else Decimal("0")

    @property
    def pricing_mode(self) -> PricingMode:
        return PricingMode.INCLUSIVE if self.vat_inclusive else PricingMode.EXCLUSIVE
