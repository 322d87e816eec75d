"""
API views for MercadoPago billing.

Provides:
- CustomerView: Ensure the user has a MercadoPago customer
- PaymentListCreateView: Create a checkout / list own payments
- PaymentDetailView: Get one own payment
- SubscriptionListCreateView: Create a subscription / list own subscriptions
- SubscriptionCancelView: Cancel an own subscription
- PlanListCreateView: List plans / create a plan (staff only)
- OAuthAuthorizeView / OAuthCallbackView: Connect a seller account

The webhook endpoint lives in billing.webhooks.views.
"""

from __future__ import annotations

from collections.abc import Mapping

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import BasePermission, IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError

from billing.exceptions import PaymentValidationError
from billing.pagination import BillingPagination
from billing.serializers import (
    CreatePaymentSerializer,
    CreatePlanSerializer,
    CreateSubscriptionSerializer,
    CustomerSerializer,
    OAuthAuthorizeQuerySerializer,
    OAuthCallbackSerializer,
    OAuthTokenSerializer,
    PaymentSerializer,
    PlanSerializer,
    SubscriptionSerializer,
)
from billing.services import (
    CheckoutService,
    CreatePaymentParams,
    CreateSubscriptionParams,
    CustomerService,
    OAuthService,
    PlanService,
    SubscriptionService,
)

IDEMPOTENCY_HEADER = "Idempotency-Key"
REPLAYED_HEADER = "Idempotent-Replayed"

LIST_PARAMETERS = [
    OpenApiParameter("limit", int, description="Page size (default 10, max 100)"),
    OpenApiParameter("offset", int, description="Items to skip (default 0)"),
]


def error_response(exc: BaseApplicationError) -> Response:
    """Render an application error with its own status code."""
    return Response(exc.to_dict(), status=exc.http_status)


def _request_data_with_key(request) -> dict:
    """
    Request body, taking the idempotency key from the header if absent.

    Raises:
        PaymentValidationError: Body is valid JSON but not an object
    """
    if not isinstance(request.data, Mapping):
        raise PaymentValidationError(
            "Request body must be a JSON object",
            error_code="INVALID_REQUEST_BODY",
        )
    data = request.data.copy()
    header_key = request.headers.get(IDEMPOTENCY_HEADER)
    if header_key and not data.get("idempotency_key"):
        data["idempotency_key"] = header_key
    return data


def _paginated(view: APIView, queryset, serializer_class) -> Response:
    paginator = BillingPagination()
    page = paginator.paginate_queryset(queryset, view.request, view=view)
    return paginator.get_paginated_response(serializer_class(page, many=True).data)


def _created(body: dict, replayed: bool) -> Response:
    response = Response(body, status=status.HTTP_201_CREATED)
    if replayed:
        response[REPLAYED_HEADER] = "true"
    return response
class CustomerView(APIView):
    """
    POST /api/v1/billing/customer/
        Return the user's MercadoPago customer, registering it on first use.

    Response:
        200 OK: Customer
        400 Bad Request: User has no email
        502 Bad Gateway: MercadoPago call failed
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="billing_ensure_customer",
        summary="Get or create MercadoPago customer",
        request=None,
        responses={200: CustomerSerializer},
        tags=["Billing"],
    )
    def post(self, request):
        try:
            customer = CustomerService.get_or_create_customer(request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(CustomerSerializer(customer).data)


class PaymentListCreateView(APIView):
    """
    Create a checkout or list the user's payments.

    POST /api/v1/billing/payments/
        Create a MercadoPago checkout preference and a pending payment.
        Supports an Idempotency-Key header (or idempotency_key field):
        retrying with the same key and body replays the first response.

    GET /api/v1/billing/payments/?limit=10&offset=0
        List own payments, newest first.

    Response (POST):
        201 Created: {checkout_url, sandbox_checkout_url, preference_id, payment}
        400 Bad Request: Validation error
        409 Conflict: Idempotency key reused with another body, or in flight
        429 Too Many Requests: Creation rate limit exceeded
        502 Bad Gateway: MercadoPago call failed
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="billing_create_payment",
        summary="Create checkout",
        request=CreatePaymentSerializer,
        parameters=[
            OpenApiParameter(
                IDEMPOTENCY_HEADER,
                str,
                location=OpenApiParameter.HEADER,
                required=False,
                description="UUID v4 or 8-64 characters [A-Za-z0-9_-]",
            )
        ],
        responses={
            201: OpenApiResponse(description="Checkout created"),
            400: OpenApiResponse(description="Validation error"),
            409: OpenApiResponse(description="Idempotency conflict"),
            429: OpenApiResponse(description="Rate limit exceeded"),
            502: OpenApiResponse(description="MercadoPago error"),
        },
        tags=["Billing - Payments"],
    )
    def post(self, request):
        try:
            data = _request_data_with_key(request)
        except PaymentValidationError as e:
            return error_response(e)

        serializer = CreatePaymentSerializer(data=data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            body, replayed = CheckoutService.create_payment(
                request.user,
                CreatePaymentParams.from_validated(serializer.validated_data),
            )
        except BaseApplicationError as e:
            return error_response(e)
        return _created(body, replayed)

    @extend_schema(
        operation_id="billing_list_payments",
        summary="List payments",
        parameters=LIST_PARAMETERS,
        responses={200: PaymentSerializer(many=True)},
        tags=["Billing - Payments"],
    )
    def get(self, request):
        return _paginated(self, CheckoutService.list_payments(request.user), PaymentSerializer)


class PaymentDetailView(APIView):
    """
    GET /api/v1/billing/payments/{payment_id}/

    Response:
        200 OK: Payment
        404 Not Found: No such payment for this user
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="billing_get_payment",
        summary="Get payment",
        responses={200: PaymentSerializer, 404: OpenApiResponse(description="Not found")},
        tags=["Billing - Payments"],
    )
    def get(self, request, payment_id):
        try:
            payment = CheckoutService.get_payment(request.user, payment_id)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(PaymentSerializer(payment).data)


class SubscriptionListCreateView(APIView):
    """
    Create a subscription or list the user's subscriptions.

    POST /api/v1/billing/subscriptions/
        Body: preapproval_plan_id, or reason + auto_recurring.
        Same idempotency rules as payment creation.

    GET /api/v1/billing/subscriptions/?limit=10&offset=0
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="billing_create_subscription",
        summary="Create subscription",
        request=CreateSubscriptionSerializer,
        responses={
            201: OpenApiResponse(description="Subscription created"),
            400: OpenApiResponse(description="Validation error"),
            409: OpenApiResponse(description="Idempotency conflict"),
            429: OpenApiResponse(description="Rate limit exceeded"),
            502: OpenApiResponse(description="MercadoPago error"),
        },
        tags=["Billing - Subscriptions"],
    )
    def post(self, request):
        try:
            data = _request_data_with_key(request)
        except PaymentValidationError as e:
            return error_response(e)

        serializer = CreateSubscriptionSerializer(data=data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            body, replayed = SubscriptionService.create_subscription(
                request.user,
                CreateSubscriptionParams.from_validated(serializer.validated_data),
            )
        except BaseApplicationError as e:
            return error_response(e)
        return _created(body, replayed)

    @extend_schema(
        operation_id="billing_list_subscriptions",
        summary="List subscriptions",
        parameters=LIST_PARAMETERS,
        responses={200: SubscriptionSerializer(many=True)},
        tags=["Billing - Subscriptions"],
    )
    def get(self, request):
        return _paginated(
            self, SubscriptionService.list_subscriptions(request.user), SubscriptionSerializer
        )


class SubscriptionCancelView(APIView):
    """
    POST /api/v1/billing/subscriptions/{subscription_id}/cancel/

    Response:
        200 OK: Cancelled subscription (also when already cancelled)
        404 Not Found: No such subscription for this user
        502 Bad Gateway: MercadoPago call failed, subscription unchanged
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="billing_cancel_subscription",
        summary="Cancel subscription",
        request=None,
        responses={200: SubscriptionSerializer},
        tags=["Billing - Subscriptions"],
    )
    def post(self, request, subscription_id):
        try:
            subscription = SubscriptionService.cancel_subscription(
                request.user, subscription_id
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(SubscriptionSerializer(subscription).data)


class PlanListCreateView(APIView):
    """
    GET /api/v1/billing/plans/
        List plans (any authenticated user).

    POST /api/v1/billing/plans/
        Create a preapproval plan (staff only).
    """

    def get_permissions(self) -> list[BasePermission]:
        if self.request.method == "POST":
            return [IsAdminUser()]
        return [IsAuthenticated()]

    @extend_schema(
        operation_id="billing_list_plans",
        summary="List plans",
        parameters=LIST_PARAMETERS,
        responses={200: PlanSerializer(many=True)},
        tags=["Billing - Plans"],
    )
    def get(self, request):
        return _paginated(self, PlanService.list_plans(), PlanSerializer)

    @extend_schema(
        operation_id="billing_create_plan",
        summary="Create plan",
        request=CreatePlanSerializer,
        responses={201: PlanSerializer},
        tags=["Billing - Plans"],
    )
    def post(self, request):
        serializer = CreatePlanSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            plan = PlanService.create_plan(serializer.validated_data)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(PlanSerializer(plan).data, status=status.HTTP_201_CREATED)


class OAuthAuthorizeView(APIView):
    """
    GET /api/v1/billing/oauth/authorize/?redirect_uri=https://shop.example.com/connected

    Return the MercadoPago URL that lets the user connect their seller
    account. redirect_uri must be in BILLING_TRUSTED_ORIGINS.

    Response:
        200 OK: {"auth_url": "https://auth.mercadopago.com/authorization?..."}
        400 Bad Request: OAuth not configured or redirect URI not allowed
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="billing_oauth_authorize",
        summary="Get seller authorization URL",
        parameters=[OpenApiParameter("redirect_uri", str, required=True)],
        responses={200: OpenApiResponse(description="Authorization URL")},
        tags=["Billing - Marketplace"],
    )
    def get(self, request):
        query = OAuthAuthorizeQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return Response(query.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            auth_url = OAuthService.get_authorization_url(
                request.user, query.validated_data["redirect_uri"]
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response({"auth_url": auth_url})


class OAuthCallbackView(APIView):
    """
    POST /api/v1/billing/oauth/callback/

    Body: {"code": "...", "redirect_uri": "..."} with the redirect URI used
    for the authorization request.

    Response:
        200 OK: Connected seller account (no credentials)
        400 Bad Request: Validation error or code rejected by MercadoPago
        502 Bad Gateway: MercadoPago unavailable
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="billing_oauth_callback",
        summary="Exchange seller authorization code",
        request=OAuthCallbackSerializer,
        responses={200: OAuthTokenSerializer},
        tags=["Billing - Marketplace"],
    )
    def post(self, request):
        serializer = OAuthCallbackSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            token = OAuthService.exchange_code(
                request.user,
                serializer.validated_data["code"],
                serializer.validated_data["redirect_uri"],
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(OAuthTokenSerializer(token).data)
