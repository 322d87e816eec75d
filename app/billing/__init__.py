"""
Billing app for MercadoPago integration.

This app handles:
- MercadoPago customer management
- Checkout preferences, payments and marketplace splits
- Subscription lifecycle (create, cancel) and plans
- Webhook reconciliation (signature, deduplication, authoritative fetch)

Related apps:
    - core: Base models, service layer and exception hierarchy

Usage:
    from billing.services import CheckoutService, CreatePaymentParams

    response, replayed = CheckoutService.create_payment(user, params)

Host projects react to state changes through settings hooks, see
billing.hooks.
"""
