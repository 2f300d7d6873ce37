"""Unit tests for the tracing decorator."""

from collections.abc import Iterator
from unittest.mock import MagicMock, call, patch

import pytest

from restaurant_pos_service.exceptions import NotFoundError
from restaurant_pos_service.observability.decorators import traced


@pytest.fixture
def span() -> Iterator[MagicMock]:
    """Span handed out by a mocked tracer while decorating."""
    span = MagicMock()
    tracer = MagicMock()
    tracer.start_as_current_span.return_value.__enter__.return_value = span
    with patch(
        "restaurant_pos_service.observability.decorators.trace.get_tracer", return_value=tracer
    ):
        yield span


@pytest.mark.unit
class TestTraced:
    """Tests for span attributes set by ``traced``."""

    @pytest.mark.asyncio
    async def test_positional_ids_are_recorded(self, span: MagicMock) -> None:
        class Orders:
            @traced("order.update_status")
            async def update_status(self, organization_id: str, order_id: str) -> str:
                return order_id

        assert await Orders().update_status("org_1", "ord_1") == "ord_1"

        span.set_attribute.assert_any_call("pos.organization_id", "org_1")
        span.set_attribute.assert_any_call("pos.order_id", "ord_1")
        span.set_attribute.assert_any_call("success", True)

    def test_keyword_ids_are_recorded(self, span: MagicMock) -> None:
        @traced()
        def lookup(organization_id: str, invoice_id: str | None = None) -> None:
            return None

        lookup("org_1", invoice_id="inv_1")

        span.set_attribute.assert_any_call("pos.organization_id", "org_1")
        span.set_attribute.assert_any_call("pos.invoice_id", "inv_1")

    def test_non_string_values_are_skipped(self, span: MagicMock) -> None:
        @traced()
        def lookup(organization_id: str, order_id: int) -> None:
            return None

        lookup("org_1", 7)

        assert call("pos.order_id", 7) not in span.set_attribute.call_args_list

    @pytest.mark.asyncio
    async def test_failure_is_recorded_and_reraised(self, span: MagicMock) -> None:
        @traced("catalog.get")
        async def get(organization_id: str, item_id: str) -> None:
            raise NotFoundError("products", item_id)

        with pytest.raises(NotFoundError):
            await get("org_1", "prod_x")

        span.set_attribute.assert_any_call("success", False)
        span.set_attribute.assert_any_call("error.user_correctable", True)
        span.record_exception.assert_called_once()
