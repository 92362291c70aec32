from wallets.utils.gateway import GatewayResult, GatewayStatus
from wallets.utils.momo import MomoClient
from wallets.utils.paystack import PaystackClient, from_minor_units, to_minor_units

__all__ = [
    "GatewayResult",
    "GatewayStatus",
    "MomoClient",
    "PaystackClient",
    "from_minor_units",
    "to_minor_units",
]
