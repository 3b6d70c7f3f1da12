"""MartianPay resource models.

Typed views of the resources carried by webhook events and returned by the
API. Models are lenient: unknown fields are ignored and almost everything is
optional, so new server-side attributes never break projection.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Resource(BaseModel):
    """Base for API resources."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AssetAmount(Resource):
    """An amount of a specific asset."""

    asset_id: str = ""
    amount: Decimal = Decimal(0)

    def __str__(self) -> str:
        return f"{self.amount} {self.asset_id}".strip()


class TransactionDetails(Resource):
    """A blockchain transaction attached to a payment, refund or payout."""

    tx_id: str = ""
    source_address: str = ""
    destination_address: str = ""
    tx_hash: str = ""
    amount: str = ""
    decimals: int = 0
    asset_id: str = ""
    token: str = ""
    network: str = ""
    type: str = ""
    created_at: int = 0
    status: str = ""
    aml_status: str = ""
    aml_info: str | None = None
    charge_id: str = ""


class Customer(Resource):
    id: str
    object: str = "customer"
    total_expense: int = 0
    total_payment: int = 0
    total_refund: int = 0
    currency: str = ""
    created: int = 0
    name: str | None = None
    email: str | None = None
    description: str | None = None
    metadata: dict[str, Any] | None = None
    phone: str | None = None


class PaymentIntent(Resource):
    """A payment collected from a customer."""

    id: str
    object: str = "payment_intent"
    amount: AssetAmount | Decimal | None = None
    canceled_at: int = 0
    cancellation_reason: str = ""
    client_secret: str = Field(default="", repr=False)
    created: int = 0
    updated: int = 0
    currency: str = ""
    customer: Customer | None = None
    description: str = ""
    livemode: bool = False
    metadata: dict[str, Any] | None = None
    merchant_order_id: str = ""
    receipt_email: str = ""
    return_url: str = ""
    status: str = ""
    payment_intent_status: str = ""
    complete_on_first_payment: bool = False
    permanent_deposit: bool = False
    permanent_deposit_asset_id: str = ""
    expired_at: int = 0
    invoice: str | None = None
    subscription: str | None = None


class Refund(Resource):
    id: str
    object: str = "refund"
    amount: AssetAmount | None = None
    network_fee: AssetAmount | None = None
    net_amount: AssetAmount | None = None
    created: int = 0
    description: str = ""
    transactions: list[TransactionDetails] | None = None
    failure_reason: str = ""
    metadata: dict[str, Any] | None = None
    charge: str | None = None
    payment_intent: str | None = None
    refund_address: str | None = None
    reason: str = ""
    status: str = ""


class Payout(Resource):
    """Funds sent from the merchant balance to a bank account or wallet."""

    id: str
    object: str = "payout"
    livemode: bool = False
    arrival_date: int = 0
    automatic: bool = False
    transactions: list[TransactionDetails] | None = None
    created: int = 0
    updated: int = 0
    merchant_id: str = ""
    source_amount: Decimal = Decimal(0)
    source_coin: str = ""
    exchange_rate: Decimal = Decimal(0)
    receive_coin: str = ""
    receive_asset_id: str = ""
    receive_account_type: str = ""
    receive_amount: Decimal = Decimal(0)
    receive_amount_min: Decimal = Decimal(0)
    payment_max_amount: Decimal = Decimal(0)
    payment_network_fee: Decimal = Decimal(0)
    payment_service_fee: Decimal = Decimal(0)
    status: str = ""
    metadata: dict[str, Any] | None = None


class Payroll(Resource):
    """A batch of payments to multiple recipients."""

    id: str
    created_at: int = 0
    updated_at: int = 0
    canceled_at: int = 0
    merchant_id: str = ""
    external_id: str = ""
    approval_status: str = ""
    status: str = ""
    total_item_num: int = 0
    total_amount: str = ""
    total_service_fee: str = ""
    currency: str = ""


class PayrollItem(Resource):
    """A single recipient payment inside a payroll."""

    id: str
    created_at: int = 0
    updated_at: int = 0
    payroll_id: str = ""
    payroll: Payroll | None = None
    external_id: str = ""
    name: str = ""
    email: str = ""
    phone: str = ""
    amount: str = ""
    service_fee: str = ""
    exchange_rate_to_usd: str = ""
    coin: str = ""
    network: str = ""
    asset_id: str = ""
    address: str = ""
    address_verified: bool = False
    status: str = ""
    transactions: list[TransactionDetails] | None = None
    has_monthly_payment: bool = False
    payment_method: str = ""


class Page(Resource):
    """Pagination metadata shared by list responses."""

    total: int = 0
    page: int = 0
    page_size: int = 0


class PaymentIntentList(Page):
    payment_intents: list[PaymentIntent] = Field(default_factory=list)


class RefundList(Page):
    refunds: list[Refund] = Field(default_factory=list)


class RefundCreateResult(Resource):
    refunds: list[Refund] = Field(default_factory=list)


class PayoutList(Page):
    payouts: list[Payout] = Field(default_factory=list)


class PayrollList(Page):
    payrolls: list[Payroll] = Field(default_factory=list)


class PayrollDetail(Resource):
    payroll: Payroll | None = None
    items: list[PayrollItem] = Field(default_factory=list)


class CustomerList(Page):
    customers: list[Customer] = Field(default_factory=list)
