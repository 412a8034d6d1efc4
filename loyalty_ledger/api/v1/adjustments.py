"""POST /v1/accounts/{user_id}/adjustments - credit or debit points"""

import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Request

from loyalty_ledger.api.dependencies import get_adjustment_service, get_request_id
from loyalty_ledger.api.v1.schemas import AdjustmentRequest, AdjustmentResponse, TransactionSchema
from loyalty_ledger.domain.exceptions import AccountNotFoundError, DuplicateRejected, StoreError, ValidationError
from loyalty_ledger.services.adjustments import AdjustmentService

router = APIRouter()


@router.post("/accounts/{user_id}/adjustments", response_model=AdjustmentResponse, status_code=201)
def submit_adjustment(
    user_id: str,
    request_body: AdjustmentRequest,
    request: Request,
    service: AdjustmentService = Depends(get_adjustment_service),
):
    """
    Write one point transaction and move the cached balance.

    Status codes:
    - 201 written
    - 404 unknown account
    - 409 already processed (idempotency token or identical adjustment within a minute)
    - 422 invalid input or insufficient balance
    - 503 store failure; a later reconciliation corrects any residual drift
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        result = service.submit_adjustment(
            user_id=user_id,
            kind=request_body.kind,
            amount=request_body.amount,
            reason=request_body.reason,
            idempotency_token=request_body.idempotency_token,
            transaction_type=request_body.type,
            reference_id=request_body.reference_id,
        )

    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    except DuplicateRejected as e:
        raise HTTPException(status_code=409, detail=str(e))

    except AccountNotFoundError:
        raise HTTPException(status_code=404, detail="Account not found")

    except StoreError as e:
        logging.error(f"Store error: {e}", extra={"request_id": request_id, "user_id": user_id})
        raise HTTPException(status_code=503, detail="Ledger store unavailable, try again")

    logging.info(
        "Adjustment request completed",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "duration_ms": (time.time() - start_time) * 1000,
        },
    )
    return AdjustmentResponse(
        transaction=TransactionSchema.model_validate(result.transaction),
        new_balance=result.new_balance,
    )
