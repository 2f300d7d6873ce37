"""Unit tests for main application entry point."""

import os
from unittest.mock import MagicMock, Mock, patch

import pytest
from fastapi import FastAPI

from src.main import create_application, get_dynamodb_resource


@pytest.mark.unit
class TestGetDynamoDBResource:
    """Tests for get_dynamodb_resource function."""

    @patch.dict(os.environ, {"DYNAMODB_ENDPOINT": "", "AWS_REGION": "us-west-2"}, clear=True)
    @patch("src.main.boto3.resource")
    def test_creates_aws_resource_when_no_endpoint(self, mock_boto3_resource: Mock) -> None:
        """Test that AWS DynamoDB resource is created when no local endpoint configured."""
        mock_resource = MagicMock()
        mock_boto3_resource.return_value = mock_resource

        result = get_dynamodb_resource()

        mock_boto3_resource.assert_called_once_with("dynamodb", region_name="us-west-2")
        assert result == mock_resource

    @patch.dict(
        os.environ,
        {
            "DYNAMODB_ENDPOINT": "http://localhost:8000",
            "AWS_REGION": "us-east-1",
            "AWS_ACCESS_KEY_ID": "dummy",
            "AWS_SECRET_ACCESS_KEY": "dummy",
        },
        clear=True,
    )
    @patch("src.main.boto3.resource")
    def test_creates_local_resource_when_endpoint_provided(self, mock_boto3_resource: Mock) -> None:
        """Test that local DynamoDB resource is created when endpoint configured."""
        mock_resource = MagicMock()
        mock_boto3_resource.return_value = mock_resource

        result = get_dynamodb_resource()

        mock_boto3_resource.assert_called_once_with(
            "dynamodb",
            endpoint_url="http://localhost:8000",
            region_name="us-east-1",
            aws_access_key_id="dummy",
            aws_secret_access_key="dummy",
        )
        assert result == mock_resource

    @patch.dict(os.environ, {"DYNAMODB_ENDPOINT": ""}, clear=True)
    @patch("src.main.boto3.resource")
    def test_uses_default_region_when_not_specified(self, mock_boto3_resource: Mock) -> None:
        """Test that default region us-east-1 is used when AWS_REGION not set."""
        get_dynamodb_resource()

        mock_boto3_resource.assert_called_once_with("dynamodb", region_name="us-east-1")


@pytest.mark.unit
class TestCreateApplication:
    """Tests for create_application function."""

    @patch("src.main.setup_observability")
    @patch("src.main.configure_logging")
    @patch("src.main.get_dynamodb_resource")
    @patch("src.main.DocumentStore")
    @patch("src.main.build_services")
    @patch("src.main.create_app")
    @patch.dict(
        os.environ,
        {
            "LOG_LEVEL": "DEBUG",
            "DYNAMODB_POS_TABLE": "test-pos-table",
            "POS_API_KEYS": "key-a:org_a, key-b:org_b",
        },
        clear=True,
    )
    def test_creates_application_with_all_dependencies(
        self,
        mock_create_app: Mock,
        mock_build_services: Mock,
        mock_document_store: Mock,
        mock_get_dynamodb: Mock,
        mock_configure_logging: Mock,
        mock_setup_observability: Mock,
    ) -> None:
        """Test that application is created with all dependencies properly wired."""
        mock_dynamodb = MagicMock()
        mock_get_dynamodb.return_value = mock_dynamodb
        services = MagicMock()
        mock_build_services.return_value = services
        mock_app = MagicMock(spec=FastAPI)
        mock_create_app.return_value = mock_app

        result = create_application()

        mock_configure_logging.assert_called_once_with("DEBUG")
        mock_document_store.assert_called_once_with(
            dynamodb_resource=mock_dynamodb, table_name="test-pos-table"
        )
        mock_build_services.assert_called_once_with(mock_document_store.return_value)
        mock_create_app.assert_called_once_with(
            catalog_service=services.catalog_service,
            store_service=services.store_service,
            order_service=services.order_service,
            invoice_service=services.invoice_service,
            report_service=services.report_service,
            live_queries=services.live_queries,
            api_keys={"key-a": "org_a", "key-b": "org_b"},
        )
        mock_setup_observability.assert_called_once_with(mock_app)
        assert result == mock_app

    @patch("src.main.setup_observability")
    @patch("src.main.configure_logging")
    @patch("src.main.get_dynamodb_resource")
    @patch("src.main.DocumentStore")
    @patch("src.main.build_services")
    @patch("src.main.create_app")
    @patch.dict(os.environ, {}, clear=True)
    def test_uses_development_key_and_default_table(
        self,
        mock_create_app: Mock,
        mock_build_services: Mock,
        mock_document_store: Mock,
        mock_get_dynamodb: Mock,
        mock_configure_logging: Mock,
        mock_setup_observability: Mock,
    ) -> None:
        """Test the defaults used when nothing is configured."""
        create_application()

        assert mock_document_store.call_args.kwargs["table_name"] == "restaurant-pos-data"
        assert mock_create_app.call_args.kwargs["api_keys"] == {"dev-key": "dev-org"}

    @patch("src.main.configure_logging")
    @patch("src.main.get_dynamodb_resource")
    @patch("src.main.DocumentStore")
    @patch("src.main.build_services")
    @patch("src.main.create_app")
    @patch.dict(os.environ, {"POS_API_KEYS": "key-without-organization"}, clear=True)
    def test_raises_error_for_malformed_api_keys(
        self,
        mock_create_app: Mock,
        mock_build_services: Mock,
        mock_document_store: Mock,
        mock_get_dynamodb: Mock,
        mock_configure_logging: Mock,
    ) -> None:
        """Test that a malformed POS_API_KEYS value fails startup."""
        with pytest.raises(ValueError, match="expected key:organization_id"):
            create_application()

        mock_create_app.assert_not_called()
