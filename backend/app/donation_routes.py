"""
Donation endpoints: POST /api/donate starts a donation with the chosen
provider, GET /api/donate lists stored donations newest first.
"""
from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse
from typing import Optional
import logging

from . import donation_schemas
from .donation_service import DonationService
from .errors import SERVER_ERROR, DonationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/donate", tags=["donations"])


def get_donation_service(request: Request) -> DonationService:
    return request.app.state.donation_service


def error_response(e: DonationError, context: str) -> JSONResponse:
    if e.status_code < 500:
        logger.warning('%s rejected: %s', context, e.message)
    else:
        logger.error('%s error: %s', context, e.message, exc_info=e.__cause__ is not None)
    return JSONResponse(status_code=e.status_code, content={"error": e.detail})


@router.post("")
async def create_donation(
    payload: Optional[donation_schemas.DonationCreate] = Body(None),
    service: DonationService = Depends(get_donation_service),
):
    """
    body: { name, amount, method, paymentMethodData }
    method: one of "stripe", "chapa", "telebirr", "manual" (or "bank")
    """
    payload = payload or donation_schemas.DonationCreate()
    try:
        return await service.submit_donation(
            payload.name, payload.amount, payload.method, payload.paymentMethodData
        )
    except DonationError as e:
        return error_response(e, 'donate')
    except Exception:
        logger.exception('donate error')
        return JSONResponse(status_code=500, content={"error": SERVER_ERROR})


@router.get("")
async def list_donations(service: DonationService = Depends(get_donation_service)):
    try:
        donations = await service.list_donations()
    except DonationError as e:
        return error_response(e, 'donations fetch')
    except Exception:
        logger.exception('donations fetch error')
        return JSONResponse(status_code=500, content={"error": SERVER_ERROR})
    return {"success": True, "donations": donations}
