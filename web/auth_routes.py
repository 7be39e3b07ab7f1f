"""
CRM Authentication Routes - Salesforce OAuth Web-Server Flow

GET /login redirects to the Salesforce consent page; the callback
exchanges the code for a session shared by every backend request.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import requests
from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from core.crm import CrmError, get_crm_connection
from core.supplier.sanitize import sanitize_for_client


logger = logging.getLogger(__name__)


# =============================================================================
# Router Setup
# =============================================================================

router = APIRouter(tags=["auth"])
templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))


@router.get("/login")
async def login():
    """Start the Salesforce OAuth login."""
    return RedirectResponse(url=get_crm_connection().authorization_url(), status_code=302)


@router.get("/oauth/callback", response_class=HTMLResponse)
def oauth_callback(request: Request, code: Optional[str] = None):
    """Exchange the authorization code and report the outcome as a page."""
    if not code:
        return PlainTextResponse("Authorization code is missing", status_code=400)

    try:
        get_crm_connection().authorize(code)
    except (CrmError, requests.RequestException) as e:
        logger.error("OAuth callback failed: %s", e)
        return templates.TemplateResponse(
            request,
            "oauth_failure.html",
            {"request": request, "error": sanitize_for_client(str(e))},
            status_code=500,
        )

    logger.info("Salesforce OAuth login completed")
    return templates.TemplateResponse(request, "oauth_success.html", {"request": request})
