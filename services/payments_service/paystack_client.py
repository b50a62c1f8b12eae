"""
Paystack API client for checkouts, refunds, transfers and account verification.

Provides async methods for:
- Initializing and verifying donation checkouts
- Refunding a charge
- Listing banks and resolving accounts
- Creating transfer recipients
- Initiating and verifying transfers (organization withdrawals)
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import httpx
from libs.common.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class CheckoutSession:
    """Result of initializing a transaction."""

    authorization_url: str
    access_code: str
    reference: str


@dataclass
class VerifiedTransaction:
    reference: str
    status: str  # success, failed, abandoned, ...
    amount: int  # minor units
    currency: str
    transaction_id: Optional[str] = None
    channel: Optional[str] = None
    fees: int = 0
    gateway_response: Optional[str] = None
    paid_at: Optional[str] = None


@dataclass
class RefundResult:
    refund_id: str
    status: str
    amount: int
    currency: str


@dataclass
class Bank:
    name: str
    code: str
    slug: str
    type: str
    is_active: bool


@dataclass
class ResolvedAccount:
    """Result of bank account verification."""

    account_number: str
    account_name: str
    bank_code: str


@dataclass
class TransferRecipient:
    recipient_code: str
    name: str
    account_number: str
    bank_code: str
    bank_name: str


@dataclass
class TransferResult:
    """Result of initiating or verifying a transfer."""

    transfer_code: str
    reference: str
    status: str  # pending, success, failed, reversed
    amount: int
    currency: str
    fee_charged: int = 0
    raw: dict = field(default_factory=dict, repr=False)


class PaystackError(Exception):
    """Base exception for Paystack API errors."""

    def __init__(
        self, message: str, status_code: int = None, response_data: dict = None
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


class PaystackClient:
    """Async client for the Paystack REST API."""

    def __init__(
        self,
        secret_key: str = None,
        base_url: str = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key or settings.PAYSTACK_SECRET_KEY
        if not self.secret_key:
            raise ValueError("PAYSTACK_SECRET_KEY is required")
        self.base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip("/")
        self.timeout = settings.PAYSTACK_TIMEOUT_SECONDS
        self.default_currency = settings.DEFAULT_CURRENCY
        self._transport = transport
        self._headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict = None,
        json_data: dict = None,
    ) -> dict:
        """Make a request and return the decoded envelope."""
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            try:
                response = await client.request(
                    method=method,
                    url=endpoint,
                    headers=self._headers,
                    params=params,
                    json=json_data,
                )
            except httpx.HTTPError as e:
                logger.error(f"Paystack request to {endpoint} failed: {e}")
                raise PaystackError(message=f"Paystack unreachable: {e}") from e

            try:
                data = response.json()
            except ValueError:
                data = {}

            if not response.is_success:
                logger.error(f"Paystack API error: {response.status_code} - {data}")
                raise PaystackError(
                    message=data.get("message", "Unknown Paystack error"),
                    status_code=response.status_code,
                    response_data=data,
                )

            if not data.get("status"):
                raise PaystackError(
                    message=data.get("message", "Paystack request failed"),
                    status_code=response.status_code,
                    response_data=data,
                )

            return data

    # =========================================================================
    # Transactions
    # =========================================================================

    async def initialize_transaction(
        self,
        email: str,
        amount: int,
        reference: str,
        currency: str = None,
        callback_url: str = None,
        metadata: dict = None,
    ) -> CheckoutSession:
        """
        Start a checkout for ``amount`` minor units.

        The donor is redirected to ``authorization_url``; the outcome arrives
        by webhook (charge.success / charge.failed).
        """
        payload = {
            "email": email,
            "amount": amount,
            "reference": reference,
            "currency": currency or self.default_currency,
        }
        if callback_url:
            payload["callback_url"] = callback_url
        if metadata:
            payload["metadata"] = metadata

        data = await self._request("POST", "/transaction/initialize", json_data=payload)

        session = data.get("data", {})
        return CheckoutSession(
            authorization_url=session.get("authorization_url", ""),
            access_code=session.get("access_code", ""),
            reference=session.get("reference", reference),
        )

    async def verify_transaction(self, reference: str) -> VerifiedTransaction:
        data = await self._request("GET", f"/transaction/verify/{reference}")

        txn = data.get("data", {})
        txn_id = txn.get("id")
        return VerifiedTransaction(
            reference=txn.get("reference", reference),
            status=txn.get("status", ""),
            amount=txn.get("amount", 0),
            currency=txn.get("currency", self.default_currency),
            transaction_id=str(txn_id) if txn_id is not None else None,
            channel=txn.get("channel"),
            fees=txn.get("fees") or 0,
            gateway_response=txn.get("gateway_response"),
            paid_at=txn.get("paid_at"),
        )

    async def create_refund(
        self,
        transaction_reference: str,
        amount: int = None,
        merchant_note: str = None,
    ) -> RefundResult:
        """
        Refund a successful charge, fully or partially (``amount`` minor units).

        Completion is reported by webhook (refund.processed / refund.failed).
        """
        payload = {"transaction": transaction_reference}
        if amount is not None:
            payload["amount"] = amount
        if merchant_note:
            payload["merchant_note"] = merchant_note

        data = await self._request("POST", "/refund", json_data=payload)

        refund = data.get("data", {})
        return RefundResult(
            refund_id=str(refund.get("id", "")),
            status=refund.get("status", "pending"),
            amount=refund.get("amount", amount or 0),
            currency=refund.get("currency", self.default_currency),
        )

    # =========================================================================
    # Banks
    # =========================================================================

    async def list_banks(self, country: str = "ghana", type: str = None) -> List[Bank]:
        """
        List banks (or mobile money providers, ``type="mobile_money"``) for a country.
        """
        params = {"country": country, "perPage": 100}
        if type:
            params["type"] = type

        data = await self._request("GET", "/bank", params=params)

        return [
            Bank(
                name=bank_data["name"],
                code=bank_data["code"],
                slug=bank_data.get("slug", ""),
                type=bank_data.get("type", ""),
                is_active=bank_data.get("active", True),
            )
            for bank_data in data.get("data", [])
        ]

    async def resolve_account(
        self,
        account_number: str,
        bank_code: str,
    ) -> ResolvedAccount:
        """
        Verify a bank account and get the account holder's name.

        Raises:
            PaystackError: If account cannot be verified
        """
        data = await self._request(
            "GET",
            "/bank/resolve",
            params={
                "account_number": account_number,
                "bank_code": bank_code,
            },
        )

        account_data = data.get("data", {})
        return ResolvedAccount(
            account_number=account_data.get("account_number", account_number),
            account_name=account_data.get("account_name", ""),
            bank_code=bank_code,
        )

    # =========================================================================
    # Transfers
    # =========================================================================

    async def create_transfer_recipient(
        self,
        recipient_type: str,
        account_number: str,
        bank_code: str,
        name: str,
        currency: str = None,
        description: str = None,
    ) -> TransferRecipient:
        """
        Register a payout destination. ``recipient_type`` is ``mobile_money``
        or ``ghipss``; the returned recipient_code is stored and reused.
        """
        data = await self._request(
            "POST",
            "/transferrecipient",
            json_data={
                "type": recipient_type,
                "name": name,
                "account_number": account_number,
                "bank_code": bank_code,
                "currency": currency or self.default_currency,
                "description": description or f"Withdrawal recipient: {name}",
            },
        )

        recipient = data.get("data", {})
        details = recipient.get("details", {})

        return TransferRecipient(
            recipient_code=recipient.get("recipient_code", ""),
            name=recipient.get("name", name),
            account_number=details.get("account_number", account_number),
            bank_code=details.get("bank_code", bank_code),
            bank_name=details.get("bank_name", ""),
        )

    async def initiate_transfer(
        self,
        recipient_code: str,
        amount: int,
        reason: str,
        reference: str = None,
        currency: str = None,
    ) -> TransferResult:
        """
        Send ``amount`` minor units from the Paystack balance to a recipient.

        The final status is sent via webhook (transfer.success/transfer.failed).
        """
        payload = {
            "source": "balance",
            "recipient": recipient_code,
            "amount": amount,
            "reason": reason,
            "currency": currency or self.default_currency,
        }
        if reference:
            payload["reference"] = reference

        data = await self._request("POST", "/transfer", json_data=payload)
        return self._transfer_result(data.get("data", {}), reference or "", amount)

    async def verify_transfer(self, reference: str) -> TransferResult:
        data = await self._request("GET", f"/transfer/verify/{reference}")
        return self._transfer_result(data.get("data", {}), reference, 0)

    def _transfer_result(self, transfer: dict, reference: str, amount: int) -> TransferResult:
        return TransferResult(
            transfer_code=transfer.get("transfer_code", ""),
            reference=transfer.get("reference", reference),
            status=transfer.get("status", "pending"),
            amount=transfer.get("amount", amount),
            currency=transfer.get("currency", self.default_currency),
            fee_charged=transfer.get("fee_charged") or 0,
            raw=transfer,
        )


def get_paystack_client() -> PaystackClient:
    """FastAPI dependency returning a client configured from settings."""
    return PaystackClient()
