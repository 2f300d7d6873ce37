"""Shared dependency factory for Lambda handlers.

This module provides cached dependency initialization to optimize Lambda cold starts.
Dependencies are created once and reused across invocations within the same Lambda container.
"""

import logging
import os
from typing import Any

import boto3
from fastapi import FastAPI

from restaurant_pos_service.auth.api_key_validator import configured_api_keys
from restaurant_pos_service.handlers.api_handler import create_app
from restaurant_pos_service.handlers.event_handler import EventHandler
from restaurant_pos_service.observability import configure_logging, setup_observability
from restaurant_pos_service.repositories.document_store import DocumentStore
from restaurant_pos_service.wiring import DEFAULT_TABLE_NAME, Services, build_services

logger = logging.getLogger(__name__)

# Module-level caches for Lambda container reuse
_dynamodb_resource: Any | None = None
_services: Services | None = None
_event_handler: EventHandler | None = None
_fastapi_app: FastAPI | None = None


def get_dynamodb_resource() -> Any:
    """Create or retrieve cached DynamoDB resource.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    global _dynamodb_resource

    if _dynamodb_resource is not None:
        return _dynamodb_resource

    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        _dynamodb_resource = boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )
    else:
        logger.info(f"Using AWS DynamoDB in region {region}")
        _dynamodb_resource = boto3.resource("dynamodb", region_name=region)

    return _dynamodb_resource


def get_services() -> Services:
    """Create or retrieve cached services.

    Returns:
        Services wired over the POS table
    """
    global _services

    if _services is not None:
        return _services

    table_name = os.getenv("DYNAMODB_POS_TABLE", DEFAULT_TABLE_NAME)
    store = DocumentStore(dynamodb_resource=get_dynamodb_resource(), table_name=table_name)
    _services = build_services(store)
    return _services


def get_event_handler() -> EventHandler:
    """Create or retrieve cached event handler.

    Returns:
        EventHandler running scheduled invoice housekeeping
    """
    global _event_handler

    if _event_handler is not None:
        return _event_handler

    _event_handler = EventHandler(invoice_service=get_services().invoice_service)

    logger.info("Event handler initialized")
    return _event_handler


def get_fastapi_app() -> FastAPI:
    """Create or retrieve cached FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    global _fastapi_app

    if _fastapi_app is not None:
        return _fastapi_app

    services = get_services()
    _fastapi_app = create_app(
        catalog_service=services.catalog_service,
        store_service=services.store_service,
        order_service=services.order_service,
        invoice_service=services.invoice_service,
        report_service=services.report_service,
        live_queries=services.live_queries,
        api_keys=configured_api_keys(os.getenv("POS_API_KEYS", "")),
    )
    setup_observability(_fastapi_app)

    logger.info("FastAPI application initialized")
    return _fastapi_app


def initialize_lambda_environment() -> None:
    """Initialize Lambda environment with logging.

    Should be called once during Lambda cold start.
    """
    log_level = os.getenv("LOG_LEVEL", "INFO")
    configure_logging(log_level)

    logger.info("Lambda environment initialized")
