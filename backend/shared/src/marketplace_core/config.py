"""Gateway configuration loaded from SSM Parameter Store.

Credentials are read once into an immutable GatewayConfig value that is
passed explicitly to gateway clients and services.

Parameter layout (per environment):
    /marketplace/{env}/mercadopago/access_token
    /marketplace/{env}/mercadopago/public_key          (optional)
    /marketplace/{env}/mercadopago/is_active           (optional, "true"/"false")
    /marketplace/{env}/mobbex/api_key
    /marketplace/{env}/mobbex/access_token
    /marketplace/{env}/mobbex/is_active                (optional)
    /marketplace/{env}/mobbex/test_mode                (optional)
    /marketplace/{env}/mobbex/marketplace_entity       (optional)
    /marketplace/{env}/mobbex/marketplace_fee_percent  (optional)
"""

import logging
import os
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from marketplace_core.models.enums import PaymentGateway
from marketplace_core.models.errors import BookingError, ErrorCode
from marketplace_core.services.ssm_service import SSMService, get_ssm_service

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT_SECONDS = 5.0


class MercadoPagoCredentials(BaseModel):
    """System-wide MercadoPago credentials."""

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., min_length=1)
    public_key: str | None = None
    is_active: bool = True


class MobbexCredentials(BaseModel):
    """System-wide Mobbex credentials."""

    model_config = ConfigDict(frozen=True)

    api_key: str = Field(..., min_length=1)
    access_token: str = Field(..., min_length=1)
    is_active: bool = True
    test_mode: bool = False
    marketplace_entity: str | None = None
    marketplace_fee_percent: Decimal = Field(default=Decimal("10"), ge=0, le=100)


class GatewayConfig(BaseModel):
    """Configuration injected into gateway clients and webhook handling."""

    model_config = ConfigDict(frozen=True)

    mercadopago: MercadoPagoCredentials | None = None
    mobbex: MobbexCredentials | None = None
    public_base_url: str = "http://localhost:3000"
    request_timeout_seconds: float = Field(default=DEFAULT_REQUEST_TIMEOUT_SECONDS, gt=0)
    notify_client_on_payment: bool = True

    def mercadopago_credentials(self) -> MercadoPagoCredentials:
        """Active MercadoPago credentials, or GATEWAY_NOT_CONFIGURED."""
        if self.mercadopago is None or not self.mercadopago.is_active:
            raise BookingError(
                ErrorCode.GATEWAY_NOT_CONFIGURED,
                details={"gateway": PaymentGateway.MERCADOPAGO.value},
            )
        return self.mercadopago

    def mobbex_credentials(self) -> MobbexCredentials:
        """Active Mobbex credentials, or GATEWAY_NOT_CONFIGURED."""
        if self.mobbex is None or not self.mobbex.is_active:
            raise BookingError(
                ErrorCode.GATEWAY_NOT_CONFIGURED,
                details={"gateway": PaymentGateway.MOBBEX.value},
            )
        return self.mobbex


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_gateway_config(
    ssm: SSMService | None = None,
    environment: str | None = None,
) -> GatewayConfig:
    """Load gateway credentials for an environment.

    A gateway whose required parameters are missing is left unconfigured.

    Args:
        ssm: SSM service (defaults to the shared instance)
        environment: Environment name. Defaults to ENVIRONMENT env var.

    Returns:
        GatewayConfig value
    """
    ssm = ssm or get_ssm_service()
    env = environment or os.getenv("ENVIRONMENT", "dev")
    prefix = f"/marketplace/{env}"

    mercadopago: MercadoPagoCredentials | None = None
    mp = ssm.get_parameters_by_path(f"{prefix}/mercadopago")
    if mp.get("access_token"):
        mercadopago = MercadoPagoCredentials(
            access_token=mp["access_token"],
            public_key=mp.get("public_key"),
            is_active=_as_bool(mp.get("is_active"), True),
        )
    else:
        logger.warning("MercadoPago credentials not configured for %s", env)

    mobbex: MobbexCredentials | None = None
    mbx = ssm.get_parameters_by_path(f"{prefix}/mobbex")
    if mbx.get("api_key") and mbx.get("access_token"):
        fee = mbx.get("marketplace_fee_percent")
        mobbex = MobbexCredentials(
            api_key=mbx["api_key"],
            access_token=mbx["access_token"],
            is_active=_as_bool(mbx.get("is_active"), True),
            test_mode=_as_bool(mbx.get("test_mode"), False),
            marketplace_entity=mbx.get("marketplace_entity"),
            marketplace_fee_percent=Decimal(fee) if fee else Decimal("10"),
        )
    else:
        logger.warning("Mobbex credentials not configured for %s", env)

    return GatewayConfig(
        mercadopago=mercadopago,
        mobbex=mobbex,
        public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:3000"),
        request_timeout_seconds=float(
            os.getenv("GATEWAY_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT_SECONDS)
        ),
        notify_client_on_payment=_as_bool(os.getenv("NOTIFY_CLIENT_ON_PAYMENT"), True),
    )
