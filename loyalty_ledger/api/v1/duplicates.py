"""Duplicate scan and ledger-wide cleanup"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from loyalty_ledger.api.dependencies import get_duplicate_detector, get_reconciliation_engine, get_request_id
from loyalty_ledger.api.v1.schemas import DuplicateGroupSchema, DuplicatesResponse, SweepRequest, SweepResponse
from loyalty_ledger.domain.duplicates import excess_count
from loyalty_ledger.domain.exceptions import StoreError
from loyalty_ledger.services.duplicate_detector import SCOPE_ALL, DuplicateDetector
from loyalty_ledger.services.reconciliation import ReconciliationEngine

router = APIRouter()


@router.get("/duplicates", response_model=DuplicatesResponse)
def find_duplicates(
    request: Request,
    user_id: Optional[str] = Query(None, description="Limit the scan to one account"),
    detector: DuplicateDetector = Depends(get_duplicate_detector),
):
    scope = user_id or SCOPE_ALL
    try:
        groups = detector.find_duplicates(scope)
    except StoreError as e:
        logging.error(f"Duplicate scan failed: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=503, detail="Ledger store unavailable, try again")

    return DuplicatesResponse(
        scope=scope,
        group_count=len(groups),
        excess_count=excess_count(groups),
        groups=[DuplicateGroupSchema.model_validate(g) for g in groups],
    )


@router.post("/duplicates/sweep", response_model=SweepResponse)
def sweep_duplicates(
    request_body: SweepRequest,
    request: Request,
    engine: ReconciliationEngine = Depends(get_reconciliation_engine),
):
    """Report (dry run) or remove duplicates across every account"""
    try:
        result = engine.sweep(dry_run=request_body.dry_run)
    except StoreError as e:
        logging.error(f"Duplicate sweep failed: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=503, detail="Ledger store unavailable, try again")

    return SweepResponse(
        dry_run=result.dry_run,
        group_count=len(result.groups),
        users_reconciled=result.users_reconciled,
        duplicates_removed=result.duplicates_removed,
        errors=result.errors,
        groups=[DuplicateGroupSchema.model_validate(g) for g in result.groups],
    )
