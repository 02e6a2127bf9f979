"""
feedgate Protocol Routes

Endpoints the appliance calls to discover updates.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from ...protocol import NOT_FOUND, translate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/update.php")
async def update_php(request: Request):
    """Signature, reputation and antivirus version check."""
    state = request.app.state
    host = request.headers.get("host", "")
    status_code, body = await translate(
        request.query_params.get("version"),
        host,
        state.store,
        state.settings,
    )
    return PlainTextResponse(body, status_code=status_code)


@router.get("/getkey.php")
async def get_webfilter_key(request: Request):
    state = request.app.state
    license_number = state.settings.license.number
    if not license_number:
        return PlainTextResponse(NOT_FOUND, status_code=404)

    key = await state.store.get_webfilter_key(license_number)
    if not key:
        return PlainTextResponse(NOT_FOUND, status_code=404)
    return PlainTextResponse(key)


@router.get("/check_update/")
async def check_update(request: Request):
    """Reputation feed availability, answered from local state."""
    state = request.app.state
    matrix = state.settings.shield_matrix
    logger.info(
        f"check_update from {request.client.host if request.client else '?'} "
        f"(client-id={request.query_params.get('client-id')}, "
        f"version={request.query_params.get('version')})"
    )

    if not matrix.enabled:
        return JSONResponse({"available": False})

    record = await state.store.get("shieldmatrix")
    if not record or not record.version:
        return JSONResponse({"available": False})

    return JSONResponse({"available": True, "url": matrix.base_url})
