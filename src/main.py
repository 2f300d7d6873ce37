"""Main application entry point for the restaurant POS service.

This module provides the FastAPI application factory and configuration
for running the service locally or in production.
"""

import logging
import os
from typing import Any

import boto3
from fastapi import FastAPI

from restaurant_pos_service.auth.api_key_validator import configured_api_keys
from restaurant_pos_service.handlers.api_handler import create_app
from restaurant_pos_service.observability import configure_logging, setup_observability
from restaurant_pos_service.repositories.document_store import DocumentStore
from restaurant_pos_service.wiring import DEFAULT_TABLE_NAME, build_services

logger = logging.getLogger(__name__)


def get_dynamodb_resource() -> Any:
    """Create DynamoDB resource with appropriate configuration.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    # Check for local DynamoDB endpoint (for development)
    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        access_key = os.getenv("AWS_ACCESS_KEY_ID")
        secret_key = os.getenv("AWS_SECRET_ACCESS_KEY")
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        return boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
        )
    else:
        logger.info(f"Using AWS DynamoDB in region {region}")
        # Production - boto3 will use default credential chain (IAM role, env vars, etc.)
        return boto3.resource("dynamodb", region_name=region)


def create_application() -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    This factory function:
    1. Configures logging
    2. Creates the DynamoDB document store
    3. Wires repositories and services
    4. Creates the FastAPI app
    5. Sets up observability

    Returns:
        Configured FastAPI application instance
    """
    log_level = os.getenv("LOG_LEVEL", "INFO")
    configure_logging(log_level)

    logger.info("Initializing restaurant POS service...")

    table_name = os.getenv("DYNAMODB_POS_TABLE", DEFAULT_TABLE_NAME)
    store = DocumentStore(dynamodb_resource=get_dynamodb_resource(), table_name=table_name)
    services = build_services(store)

    api_keys = configured_api_keys(os.getenv("POS_API_KEYS", ""))
    logger.info(f"API keys configured for {len(set(api_keys.values()))} organizations")

    app = create_app(
        catalog_service=services.catalog_service,
        store_service=services.store_service,
        order_service=services.order_service,
        invoice_service=services.invoice_service,
        report_service=services.report_service,
        live_queries=services.live_queries,
        api_keys=api_keys,
    )
    setup_observability(app)

    logger.info("Restaurant POS service initialized successfully")
    return app


# Create the FastAPI application instance (only when not in test mode)
# This prevents the app from being created during test collection
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    # Create a placeholder app for test imports
    app = FastAPI()


if __name__ == "__main__":
    """Run the application with uvicorn when executed directly."""
    import uvicorn

    port = int(os.getenv("PORT", "8001"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")
    logger.info(f"API documentation available at http://{host}:{port}/docs")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
