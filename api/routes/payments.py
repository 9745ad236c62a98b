"""
Payments API routes.

Thin HTTP layer over PaymentService / LedgerService: parse, delegate,
shape the response. Gateway and ledger details stay in the services.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from starlette import status as http_status

from api.dependencies import get_ledger_service, get_payment_service
from application.dtos.payments import (
    CaptureRequest,
    CaptureResult,
    CreateOrderRequest,
    CreateOrderResult,
    OrderStatusResult,
    RefundRequest,
    RefundResult,
    TransactionDTO,
    TransactionListResult,
    TransactionStatsDTO,
    VerifyPaymentRequest,
    VerifyPaymentResult,
)
from application.services.ledger_service import LedgerService
from application.services.payment_service import PaymentService


router = APIRouter(prefix="/api/payment", tags=["Payments"])


@router.post("/create-order", response_model=CreateOrderResult, summary="Create gateway order")
async def create_order(
    payload: CreateOrderRequest,
    service: PaymentService = Depends(get_payment_service),
):
    return await service.create_order(
        payload.amount,
        payload.currency,
        payload.metadata,
        user_id=payload.user_id,
        user_email=payload.user_email,
        user_phone=payload.user_phone,
    )


@router.post(
    "/verify-payment",
    response_model=VerifyPaymentResult,
    responses={400: {"model": VerifyPaymentResult, "description": "Signature verification failed"}},
    summary="Verify checkout signature",
)
async def verify_payment(
    payload: VerifyPaymentRequest,
    service: PaymentService = Depends(get_payment_service),
):
    result = await service.verify_payment(
        payload.razorpay_order_id,
        payload.razorpay_payment_id,
        payload.razorpay_signature,
        payload.payment_method,
    )
    if not result.success:
        return JSONResponse(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            content=result.model_dump(mode="json"),
        )
    return result


@router.get("/order-status/{order_id}", response_model=OrderStatusResult, summary="Order status")
async def get_order_status(
    order_id: str,
    service: PaymentService = Depends(get_payment_service),
):
    return await service.get_order_status(order_id)


@router.post("/refund", response_model=RefundResult, summary="Refund a payment")
async def refund_payment(
    payload: RefundRequest,
    service: PaymentService = Depends(get_payment_service),
):
    return await service.refund(payload.payment_id, payload.amount)


@router.post("/capture", response_model=CaptureResult, summary="Capture an authorized payment")
async def capture_payment(
    payload: CaptureRequest,
    service: PaymentService = Depends(get_payment_service),
):
    return await service.capture_payment(payload.payment_id, payload.amount, payload.currency)


@router.get("/transaction/{transaction_id}", response_model=TransactionDTO, summary="Transaction by id")
async def get_transaction(
    transaction_id: str,
    ledger: LedgerService = Depends(get_ledger_service),
):
    return await ledger.get_transaction(transaction_id)


@router.get("/transactions", response_model=TransactionListResult, summary="List transactions")
async def list_transactions(
    limit: Optional[int] = Query(default=None, ge=1),
    offset: Optional[int] = Query(default=None, ge=0),
    status: Optional[str] = Query(default=None),
    ledger: LedgerService = Depends(get_ledger_service),
):
    return await ledger.list_transactions(limit=limit, offset=offset, status=status)


@router.get("/user-transactions/{user_id}", response_model=TransactionListResult, summary="List a user's transactions")
async def list_user_transactions(
    user_id: str,
    limit: Optional[int] = Query(default=None, ge=1),
    offset: Optional[int] = Query(default=None, ge=0),
    ledger: LedgerService = Depends(get_ledger_service),
):
    return await ledger.list_user_transactions(user_id, limit=limit, offset=offset)


@router.get("/stats", response_model=TransactionStatsDTO, summary="Ledger statistics")
async def get_stats(
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    ledger: LedgerService = Depends(get_ledger_service),
):
    return await ledger.stats(start_date, end_date)
