import asyncio
import pytest
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

from stk_payments.repositories import PaymentRepository
from stk_payments.models import PaymentStatus

# Помечаем все тесты в этом файле для работы с asyncio
pytestmark = pytest.mark.asyncio


async def test_create_attach_and_get(payment_repo: PaymentRepository):
    payment_id = await payment_repo.create(Decimal("100"), "254712345678")

    payment = await payment_repo.get_by_id(payment_id)
    assert payment is not None
    assert payment.status is PaymentStatus.pending
    assert payment.amount == Decimal("100")
    assert payment.phone_number == "254712345678"
    assert payment.checkout_request_id is None
    assert payment.transaction_id is None
    assert payment.updated_at is None
    assert payment.created_at is not None

    await payment_repo.attach_checkout_request_id(payment_id, "ws_CO_1")
    by_checkout = await payment_repo.get_by_checkout_request_id("ws_CO_1")
    assert by_checkout is not None
    assert by_checkout.id == payment_id


async def test_attach_to_missing_payment_is_silent(payment_repo: PaymentRepository):
    await payment_repo.attach_checkout_request_id(uuid4(), "ws_CO_missing")
    assert await payment_repo.get_by_checkout_request_id("ws_CO_missing") is None


async def test_get_missing_payment_returns_none(payment_repo: PaymentRepository):
    assert await payment_repo.get_by_id(uuid4()) is None


async def test_finalize_completed_normalizes_phone(payment_repo: PaymentRepository):
    payment_id = await payment_repo.create(Decimal("100"), "254700000001")
    await payment_repo.attach_checkout_request_id(payment_id, "ws_CO_2")

    result = await payment_repo.finalize(
        "ws_CO_2",
        PaymentStatus.completed,
        transaction_id="ABC123",
        confirmed_phone="254712345678.0",
        confirmed_amount=Decimal("100"),
    )

    assert result is not None
    assert result.status is PaymentStatus.completed
    assert result.transaction_id == "ABC123"
    assert result.phone_number == "254712345678"
    assert result.failure_reason is None
    assert result.updated_at is not None


async def test_finalize_failed_stores_reason(payment_repo: PaymentRepository):
    payment_id = await payment_repo.create(Decimal("50"), "254712345678")
    await payment_repo.attach_checkout_request_id(payment_id, "ws_CO_3")

    result = await payment_repo.finalize("ws_CO_3", PaymentStatus.failed, failure_reason="Request cancelled by user")

    assert result.status is PaymentStatus.failed
    assert result.failure_reason == "Request cancelled by user"
    assert result.transaction_id is None


async def test_finalize_unknown_checkout_id_is_noop(payment_repo: PaymentRepository):
    payment_id = await payment_repo.create(Decimal("10"), "254712345678")

    assert await payment_repo.finalize("ws_CO_unknown", PaymentStatus.completed, transaction_id="X") is None

    payment = await payment_repo.get_by_id(payment_id)
    assert payment.status is PaymentStatus.pending
    assert payment.transaction_id is None


async def test_finalize_terminal_payment_is_not_repatched(payment_repo: PaymentRepository):
    payment_id = await payment_repo.create(Decimal("10"), "254712345678")
    await payment_repo.attach_checkout_request_id(payment_id, "ws_CO_4")
    await payment_repo.finalize("ws_CO_4", PaymentStatus.completed, transaction_id="FIRST")

    again = await payment_repo.finalize("ws_CO_4", PaymentStatus.failed, failure_reason="late duplicate")

    assert again.status is PaymentStatus.completed
    assert again.transaction_id == "FIRST"
    assert again.failure_reason is None


async def test_finalize_keeps_phone_when_gateway_phone_is_malformed(payment_repo: PaymentRepository):
    payment_id = await payment_repo.create(Decimal("10"), "254712345678")
    await payment_repo.attach_checkout_request_id(payment_id, "ws_CO_5")

    result = await payment_repo.finalize("ws_CO_5", PaymentStatus.completed, transaction_id="R1", confirmed_phone="12")

    assert result.status is PaymentStatus.completed
    assert result.phone_number == "254712345678"


async def test_history_by_phone_is_capped_and_newest_first(payment_repo: PaymentRepository):
    for i in range(12):
        await payment_repo.create(Decimal(i + 1), "254712345678")
    await payment_repo.create(Decimal("999"), "254799999999")

    history = await payment_repo.get_by_phone("254712345678", limit=100)

    assert len(history) == 10
    assert all(p.phone_number == "254712345678" for p in history)
    created = [p.created_at for p in history]
    assert created == sorted(created, reverse=True)
    assert history[0].amount == Decimal("12")


async def test_listing_is_capped_at_fifty(payment_repo: PaymentRepository):
    for i in range(53):
        await payment_repo.create(Decimal(i + 1), "254712345678")

    listing = await payment_repo.get_all(limit=500)

    assert len(listing) == 50
    created = [p.created_at for p in listing]
    assert created == sorted(created, reverse=True)


async def test_find_stale_pending(payment_repo: PaymentRepository):
    stale_id = await payment_repo.create(Decimal("10"), "254712345678")
    done_id = await payment_repo.create(Decimal("10"), "254712345678")
    await payment_repo.attach_checkout_request_id(done_id, "ws_CO_6")
    await payment_repo.finalize("ws_CO_6", PaymentStatus.completed, transaction_id="R6")

    # Отрицательный порог сдвигает границу в будущее: все текущие записи "старые"
    stale = await payment_repo.find_stale_pending(timedelta(minutes=-1))
    assert [p.id for p in stale] == [stale_id]

    assert await payment_repo.find_stale_pending(timedelta(hours=1)) == []


async def test_check_connection(payment_repo: PaymentRepository):
    await payment_repo.check_connection()


@pytest.mark.parametrize("attempt", range(5))
async def test_concurrent_finalize_changes_status_once(payment_repo: PaymentRepository, attempt):
    """
    Два колбэка по одному CheckoutRequestID приходят одновременно:
    побеждает один, поля второго не смешиваются с первым.
    """
    # --- ARRANGE ---
    checkout_request_id = f"ws_CO_race_{attempt}"
    payment_id = await payment_repo.create(Decimal("100"), "254712345678")
    await payment_repo.attach_checkout_request_id(payment_id, checkout_request_id)

    # --- ACT ---
    results = await asyncio.gather(
        payment_repo.finalize(checkout_request_id, PaymentStatus.completed, transaction_id="FIRST"),
        payment_repo.finalize(checkout_request_id, PaymentStatus.failed, failure_reason="duplicate"),
    )

    # --- ASSERT ---
    payment = await payment_repo.get_by_id(payment_id)
    if payment.status is PaymentStatus.completed:
        assert payment.transaction_id == "FIRST"
        assert payment.failure_reason is None
    else:
        assert payment.status is PaymentStatus.failed
        assert payment.failure_reason == "duplicate"
        assert payment.transaction_id is None
    assert [r.status for r in results] == [payment.status, payment.status]
