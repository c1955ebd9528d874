"""Gateway webhook adapters.

Each adapter turns one gateway's raw payload into a PaymentEvent. Adapters
are stateless and never touch storage.
"""

from .mercadopago import normalize_mercadopago_payment
from .mobbex import normalize_mobbex_webhook

__all__ = ["normalize_mercadopago_payment", "normalize_mobbex_webhook"]
