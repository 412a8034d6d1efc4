"""Audit and reconcile endpoints for one account"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from loyalty_ledger.api.dependencies import get_auditor, get_reconciliation_engine, get_request_id
from loyalty_ledger.api.v1.schemas import AuditResponse, ReconcileResponse
from loyalty_ledger.domain.exceptions import AccountNotFoundError, AuditError, StoreError
from loyalty_ledger.services.auditor import BalanceAuditor
from loyalty_ledger.services.reconciliation import ReconciliationEngine

router = APIRouter()


@router.get("/accounts/{user_id}/audit", response_model=AuditResponse)
def audit_account(
    user_id: str,
    request: Request,
    strict: bool = Query(False, description="Answer 503 instead of status=error"),
    auditor: BalanceAuditor = Depends(get_auditor),
):
    """
    Compare the cached balance with the ledger.

    A failed audit is reported as status "error" with zeroed numbers, never
    as "ok".
    """
    result = auditor.audit(user_id)
    if strict:
        try:
            result.raise_for_status()
        except AuditError as e:
            logging.warning(str(e), extra={"request_id": get_request_id(request)})
            raise HTTPException(status_code=503, detail="Audit could not complete, try again")
    return AuditResponse.model_validate(result)


@router.post("/accounts/{user_id}/reconcile", response_model=ReconcileResponse)
def reconcile_account(
    user_id: str,
    request: Request,
    engine: ReconciliationEngine = Depends(get_reconciliation_engine),
    auditor: BalanceAuditor = Depends(get_auditor),
):
    """Remove duplicates, resync the cached balance, then re-audit"""
    try:
        result = engine.reconcile(user_id)
    except AccountNotFoundError:
        raise HTTPException(status_code=404, detail="Account not found")
    except StoreError as e:
        logging.error(f"Reconciliation failed: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=503, detail="Ledger store unavailable, try again")

    return ReconcileResponse(
        user_id=user_id,
        duplicates_removed=result.duplicates_removed,
        balance_adjusted=result.balance_adjusted,
        errors=result.errors,
        audit=AuditResponse.model_validate(auditor.audit(user_id)),
    )
