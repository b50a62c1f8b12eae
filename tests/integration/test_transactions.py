"""Integration tests for admin transaction and refund endpoints."""

import pytest
from libs.auth.models import AuthUser
from services.payments_service.models import (
    DonationStatus,
    PaymentTransactionStatus,
    RefundStatus,
)
from tests.factories import (
    DonationFactory,
    RefundFactory,
    TransactionFactory,
    WithdrawalFactory,
)


async def _add(db_session, *objects):
    db_session.add_all(objects)
    await db_session.commit()


@pytest.mark.asyncio
@pytest.mark.integration
async def test_get_transaction_lists_allowed_transitions(client, db_session):
    transaction = TransactionFactory.create()
    await _add(db_session, transaction)

    response = await client.get(f"/payments/transactions/{transaction.id}")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "PENDING"
    assert data["allowed_transitions"] == ["SUCCESS", "FAILED"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_get_transaction_not_found(client):
    response = await client.get(
        "/payments/transactions/00000000-0000-0000-0000-000000000000"
    )

    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_override_status(client, db_session):
    transaction = TransactionFactory.create()
    await _add(db_session, transaction)

    response = await client.patch(
        f"/payments/transactions/{transaction.id}/status",
        json={"status": "SUCCESS", "status_message": "Reconciled"},
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["status"] == "SUCCESS"
    assert data["status_message"] == "Reconciled"
    assert data["completed_at"] is not None
    assert data["allowed_transitions"] == ["DISPUTED", "REFUNDED", "REFUND_PENDING"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_override_status_rejects_invalid_transition(client, db_session):
    transaction = TransactionFactory.create(status=PaymentTransactionStatus.REFUNDED)
    await _add(db_session, transaction)

    response = await client.patch(
        f"/payments/transactions/{transaction.id}/status",
        json={"status": "SUCCESS"},
    )

    assert response.status_code == 409
    assert response.json()["detail"] == (
        "Cannot change status from terminal state: REFUNDED"
    )


@pytest.mark.asyncio
@pytest.mark.integration
async def test_override_status_pending_to_disputed(client, db_session):
    transaction = TransactionFactory.create()
    await _add(db_session, transaction)

    response = await client.patch(
        f"/payments/transactions/{transaction.id}/status",
        json={"status": "DISPUTED"},
    )

    assert response.status_code == 409
    assert response.json()["detail"] == (
        "Invalid transition from PENDING to DISPUTED. Allowed: SUCCESS, FAILED"
    )


@pytest.mark.asyncio
@pytest.mark.integration
async def test_request_refund(client, db_session, paystack_stub):
    transaction = TransactionFactory.create(status=PaymentTransactionStatus.SUCCESS)
    donation = DonationFactory.create(transaction=transaction, status=DonationStatus.SUCCESS)
    await _add(db_session, transaction, donation)
    paystack_stub.on(
        "POST", "/refund", {"id": 3018284, "status": "pending", "amount": 5000}
    )

    response = await client.post(
        f"/payments/transactions/{transaction.id}/refunds",
        json={"reason": "Donor asked"},
    )

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["status"] == "PENDING"
    assert data["amount"] == transaction.amount
    assert data["donation_id"] == str(donation.id)
    assert data["processor_refund_id"] == "3018284"
    assert paystack_stub.last_json("POST", "/refund")["transaction"] == transaction.processor_ref

    await db_session.refresh(transaction)
    assert transaction.status == PaymentTransactionStatus.REFUND_PENDING

    listed = await client.get(f"/payments/transactions/{transaction.id}/refunds")
    assert listed.status_code == 200
    assert [r["id"] for r in listed.json()] == [data["id"]]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_refund_requires_successful_transaction(client, db_session, paystack_stub):
    transaction = TransactionFactory.create()
    await _add(db_session, transaction)

    response = await client.post(
        f"/payments/transactions/{transaction.id}/refunds",
        json={"reason": "Too early"},
    )

    assert response.status_code == 409
    assert paystack_stub.requests == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_refund_amount_cannot_exceed_charge(client, db_session, paystack_stub):
    transaction = TransactionFactory.create(status=PaymentTransactionStatus.SUCCESS)
    await _add(db_session, transaction)

    response = await client.post(
        f"/payments/transactions/{transaction.id}/refunds",
        json={"reason": "Too much", "amount": transaction.amount + 1},
    )

    assert response.status_code == 400
    assert paystack_stub.requests == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_refund_provider_error_leaves_transaction(client, db_session, paystack_stub):
    transaction = TransactionFactory.create(status=PaymentTransactionStatus.SUCCESS)
    await _add(db_session, transaction)
    paystack_stub.on("POST", "/refund", None, status_code=400, message="Already refunded")

    response = await client.post(
        f"/payments/transactions/{transaction.id}/refunds",
        json={"reason": "Retry"},
    )

    assert response.status_code == 502
    await db_session.refresh(transaction)
    assert transaction.status == PaymentTransactionStatus.SUCCESS


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_refunds_includes_settled(client, db_session):
    transaction = TransactionFactory.create(status=PaymentTransactionStatus.REFUNDED)
    refund = RefundFactory.create(transaction, status=RefundStatus.SUCCESS)
    await _add(db_session, transaction, refund)

    response = await client.get(f"/payments/transactions/{transaction.id}/refunds")

    assert response.status_code == 200
    assert response.json()[0]["status"] == "SUCCESS"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_non_admin_is_forbidden(client, db_session, auth_state):
    transaction = TransactionFactory.create()
    await _add(db_session, transaction)
    auth_state.user = AuthUser(sub="member-1", email="member@example.com")

    response = await client.get(f"/payments/transactions/{transaction.id}")

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unauthenticated_is_rejected(client, auth_state):
    auth_state.user = None

    response = await client.get(
        "/payments/transactions/00000000-0000-0000-0000-000000000000"
    )

    assert response.status_code == 401


@pytest.mark.asyncio
@pytest.mark.integration
async def test_reconcile_applies_verified_charge(client, db_session, paystack_stub):
    transaction = TransactionFactory.create()
    donation = DonationFactory.create(transaction=transaction)
    await _add(db_session, transaction, donation)
    paystack_stub.on(
        "GET",
        f"/transaction/verify/{transaction.processor_ref}",
        {
            "id": 4099260517,
            "reference": transaction.processor_ref,
            "status": "success",
            "amount": transaction.amount,
            "channel": "card",
            "fees": 75,
            "gateway_response": "Successful",
            "paid_at": "2026-10-19T09:00:00.000Z",
        },
    )

    response = await client.post(f"/payments/transactions/{transaction.id}/reconcile")

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["status"] == "SUCCESS"
    assert data["processor_transaction_id"] == "4099260517"
    assert data["payment_method"] == "card"
    assert data["fees"] == 75
    assert data["completed_at"] is not None
    await db_session.refresh(donation)
    assert donation.status == DonationStatus.SUCCESS


@pytest.mark.asyncio
@pytest.mark.integration
async def test_reconcile_rejects_amount_mismatch(client, db_session, paystack_stub):
    transaction = TransactionFactory.create()
    donation = DonationFactory.create(transaction=transaction)
    await _add(db_session, transaction, donation)
    paystack_stub.on(
        "GET",
        f"/transaction/verify/{transaction.processor_ref}",
        {"status": "success", "amount": transaction.amount - 100},
    )

    response = await client.post(f"/payments/transactions/{transaction.id}/reconcile")

    assert response.status_code == 409
    assert response.json()["detail"].startswith("Amount mismatch")
    await db_session.refresh(transaction)
    await db_session.refresh(donation)
    assert transaction.status == PaymentTransactionStatus.PENDING
    assert donation.status == DonationStatus.PENDING


@pytest.mark.asyncio
@pytest.mark.integration
async def test_reconcile_leaves_ongoing_charge_pending(client, db_session, paystack_stub):
    transaction = TransactionFactory.create()
    await _add(db_session, transaction)
    paystack_stub.on(
        "GET",
        f"/transaction/verify/{transaction.processor_ref}",
        {"status": "ongoing", "amount": transaction.amount},
    )

    response = await client.post(f"/payments/transactions/{transaction.id}/reconcile")

    assert response.status_code == 200
    assert response.json()["status"] == "PENDING"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_reconcile_cannot_reopen_refunded_charge(client, db_session, paystack_stub):
    transaction = TransactionFactory.create(status=PaymentTransactionStatus.REFUNDED)
    await _add(db_session, transaction)
    paystack_stub.on(
        "GET",
        f"/transaction/verify/{transaction.processor_ref}",
        {"status": "success", "amount": transaction.amount},
    )

    response = await client.post(f"/payments/transactions/{transaction.id}/reconcile")

    assert response.status_code == 409
    await db_session.refresh(transaction)
    assert transaction.status == PaymentTransactionStatus.REFUNDED


@pytest.mark.asyncio
@pytest.mark.integration
async def test_reconcile_applies_failed_transfer(client, db_session, paystack_stub):
    withdrawal = WithdrawalFactory.create()
    await _add(db_session, withdrawal)
    paystack_stub.on(
        "GET",
        f"/transfer/verify/{withdrawal.processor_ref}",
        {"transfer_code": "TRF_9", "status": "failed", "amount": withdrawal.amount},
    )

    response = await client.post(f"/payments/transactions/{withdrawal.id}/reconcile")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "FAILED"
    assert data["status_message"] == "Transfer failed"
    assert data["processor_transaction_id"] == "TRF_9"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_reconcile_is_admin_only(client, db_session, auth_state, paystack_stub):
    transaction = TransactionFactory.create()
    await _add(db_session, transaction)
    auth_state.user = AuthUser(sub="donor", email="donor@example.com")

    response = await client.post(f"/payments/transactions/{transaction.id}/reconcile")

    assert response.status_code == 403
    assert paystack_stub.requests == []
