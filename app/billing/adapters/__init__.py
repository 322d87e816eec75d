"""
External service adapters for billing.

Adapters encapsulate third-party API calls so errors, timeouts and
logging are handled consistently.
"""

from billing.adapters.mercadopago_adapter import (
    CreatePlanParams,
    CreatePreapprovalParams,
    CreatePreferenceParams,
    CustomerResult,
    MercadoPagoAdapter,
    OAuthTokenResult,
    PlanResult,
    PreapprovalResult,
    PreferenceResult,
    ProviderPayment,
)

__all__ = [
    "CreatePlanParams",
    "CreatePreapprovalParams",
    "CreatePreferenceParams",
    "CustomerResult",
    "MercadoPagoAdapter",
    "OAuthTokenResult",
    "PlanResult",
    "PreapprovalResult",
    "PreferenceResult",
    "ProviderPayment",
]
