"""Unit tests for gateway configuration loading from SSM."""

from decimal import Decimal
from typing import Generator
from unittest.mock import MagicMock

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws
from pydantic import ValidationError

from marketplace_core.config import GatewayConfig, load_gateway_config
from marketplace_core.models.errors import BookingError, ErrorCode
from marketplace_core.services.ssm_service import SSMService, SSMServiceError


@pytest.fixture
def ssm(aws_credentials: None) -> Generator[SSMService, None, None]:
    with mock_aws():
        client = boto3.client("ssm", region_name="eu-west-1")
        for name, value in {
            "/marketplace/test/mercadopago/access_token": "APP_USR-token",
            "/marketplace/test/mercadopago/public_key": "APP_USR-public",
            "/marketplace/test/mobbex/api_key": "mbx-key",
            "/marketplace/test/mobbex/access_token": "mbx-token",
            "/marketplace/test/mobbex/is_active": "false",
            "/marketplace/test/mobbex/marketplace_fee_percent": "12.5",
        }.items():
            client.put_parameter(Name=name, Value=value, Type="SecureString")
        yield SSMService(client)


def test_loads_credentials(ssm: SSMService, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://marketplace.example.com")
    monkeypatch.setenv("GATEWAY_TIMEOUT_SECONDS", "3")
    monkeypatch.setenv("NOTIFY_CLIENT_ON_PAYMENT", "false")

    config = load_gateway_config(ssm, environment="test")

    assert config.mercadopago_credentials().access_token == "APP_USR-token"
    assert config.mercadopago.public_key == "APP_USR-public"
    assert config.mobbex.marketplace_fee_percent == Decimal("12.5")
    assert config.public_base_url == "https://marketplace.example.com"
    assert config.request_timeout_seconds == 3.0
    assert config.notify_client_on_payment is False


def test_inactive_gateway_is_not_configured(ssm: SSMService) -> None:
    config = load_gateway_config(ssm, environment="test")

    with pytest.raises(BookingError) as exc_info:
        config.mobbex_credentials()

    assert exc_info.value.code == ErrorCode.GATEWAY_NOT_CONFIGURED


def test_missing_parameters_leave_gateway_unset(ssm: SSMService) -> None:
    config = load_gateway_config(ssm, environment="prod")

    assert config.mercadopago is None
    assert config.mobbex is None


def test_path_is_read_once_and_cached(ssm: SSMService) -> None:
    first = ssm.get_parameters_by_path("/marketplace/test/mobbex")
    assert first["api_key"] == "mbx-key"
    assert first["marketplace_fee_percent"] == "12.5"

    ssm._client.put_parameter(
        Name="/marketplace/test/mobbex/api_key",
        Value="rotated",
        Type="SecureString",
        Overwrite=True,
    )
    assert ssm.get_parameters_by_path("/marketplace/test/mobbex")["api_key"] == "mbx-key"

    ssm.clear_cache()
    assert ssm.get_parameters_by_path("/marketplace/test/mobbex/")["api_key"] == "rotated"


def test_missing_path_is_empty(ssm: SSMService) -> None:
    assert ssm.get_parameters_by_path("/marketplace/nowhere") == {}


def test_config_is_immutable() -> None:
    config = GatewayConfig()

    with pytest.raises(ValidationError):
        config.public_base_url = "https://other"  # type: ignore[misc]


def test_access_denied_is_reported() -> None:
    client = MagicMock()
    client.get_paginator.return_value.paginate.side_effect = ClientError(
        {"Error": {"Code": "AccessDeniedException", "Message": "denied"}},
        "GetParametersByPath",
    )

    with pytest.raises(SSMServiceError, match="Access denied"):
        SSMService(client).get_parameters_by_path("/marketplace/test/mobbex")
