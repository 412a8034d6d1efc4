"""Account endpoints - create, points balance/history, monthly level"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from loyalty_ledger.api.dependencies import get_ledger_store, get_request_id
from loyalty_ledger.api.v1.schemas import (
    AccountCreateRequest,
    AccountResponse,
    LevelResponse,
    PointsResponse,
    TransactionSchema,
    TransactionSummarySchema,
)
from loyalty_ledger.domain.exceptions import AccountNotFoundError, StoreError
from loyalty_ledger.domain.levels import level_info, monthly_points
from loyalty_ledger.infrastructure.database.repositories import SqlLedgerStore
from loyalty_ledger.services.auditor import summarize
from loyalty_ledger.utils.date_utils import start_of_month, utcnow

router = APIRouter()


@router.post("/accounts", response_model=AccountResponse, status_code=201)
def create_account(
    request_body: AccountCreateRequest,
    request: Request,
    store: SqlLedgerStore = Depends(get_ledger_store),
):
    """Create an account with a zero balance (no-op when it already exists)"""
    try:
        balance = store.create_account(request_body.user_id)
    except StoreError as e:
        logging.error(f"Store error: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=503, detail="Ledger store unavailable, try again")
    return AccountResponse(user_id=request_body.user_id, balance=balance)


@router.get("/accounts/{user_id}/points", response_model=PointsResponse)
def get_points(user_id: str, request: Request, store: SqlLedgerStore = Depends(get_ledger_store)):
    """
    Cached balance with the full transaction history, newest first.

    The summary is computed from the ledger, so it can disagree with the
    cached balance until the account is reconciled.
    """
    try:
        balance = store.get_balance(user_id)
        transactions = store.query_transactions(user_id=user_id)
    except AccountNotFoundError:
        raise HTTPException(status_code=404, detail="Account not found")
    except StoreError as e:
        logging.error(f"Store error: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=503, detail="Ledger store unavailable, try again")

    summary = summarize(transactions)
    return PointsResponse(
        user_id=user_id,
        balance=balance,
        summary=TransactionSummarySchema.model_validate(summary),
        transactions=[TransactionSchema.model_validate(t) for t in reversed(transactions)],
    )


@router.get("/accounts/{user_id}/level", response_model=LevelResponse)
def get_level(user_id: str, request: Request, store: SqlLedgerStore = Depends(get_ledger_store)):
    """Monthly points and gamification tier"""
    now = utcnow()
    try:
        store.get_balance(user_id)
        transactions = store.query_transactions(user_id=user_id, since=start_of_month(now), until=now)
    except AccountNotFoundError:
        raise HTTPException(status_code=404, detail="Account not found")
    except StoreError as e:
        logging.error(f"Store error: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=503, detail="Ledger store unavailable, try again")

    points = monthly_points(transactions, now)
    info = level_info(points)
    return LevelResponse(
        user_id=user_id,
        monthly_points=points,
        current_level=info.current_level,
        next_level=info.next_level,
        current_progress=info.current_progress,
        max_progress=info.max_progress,
        points_to_next_level=info.points_to_next_level,
        level_name=info.level_name,
        level_color=info.level_color,
    )
