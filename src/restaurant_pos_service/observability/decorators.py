"""OpenTelemetry tracing decorators."""

import asyncio
import functools
import inspect
from collections.abc import Callable
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span

from restaurant_pos_service.exceptions import POSError

F = TypeVar("F", bound=Callable[..., Any])

# arguments copied onto the span when present, whether passed by position or keyword
SPAN_ARGUMENTS = ("organization_id", "order_id", "invoice_id", "category_id", "collection")


def _annotate(
    span: Span, signature: inspect.Signature, args: tuple[Any, ...], kwargs: dict[str, Any]
) -> None:
    try:
        arguments = signature.bind_partial(*args, **kwargs).arguments
    except TypeError:
        # the call itself will fail with the same error
        arguments = kwargs
    for argument in SPAN_ARGUMENTS:
        value = arguments.get(argument)
        if isinstance(value, str):
            span.set_attribute(f"pos.{argument}", value)


def _record_failure(span: Span, error: Exception) -> None:
    span.set_attribute("success", False)
    span.set_attribute("error.type", type(error).__name__)
    span.set_attribute("error.message", str(error))
    # validation errors are expected outcomes, not faults
    span.set_attribute("error.user_correctable", isinstance(error, POSError))
    span.record_exception(error)


def traced(span_name: str | None = None, service_name: str = "pos-svc") -> Callable[[F], F]:
    """Decorator to add OpenTelemetry tracing to a function.

    Creates a span per call, tags it with the organization, order and invoice
    ids it was called with, and records failures. Async functions are
    supported.

    Args:
        span_name: Name for the span (defaults to function name if not provided)
        service_name: Service name for span attributes

    Example:
        @traced("order.complete")
        async def complete_order(self, organization_id: str, order_id: str) -> Order:
            ...
    """

    def decorator(func: F) -> F:
        name = span_name or func.__name__
        tracer = trace.get_tracer(service_name)
        signature = inspect.signature(func)

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name) as span:
                span.set_attribute("service.name", service_name)
                _annotate(span, signature, args, kwargs)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _record_failure(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name) as span:
                span.set_attribute("service.name", service_name)
                _annotate(span, signature, args, kwargs)
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    _record_failure(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper  # type: ignore
        return sync_wrapper  # type: ignore

    return decorator
