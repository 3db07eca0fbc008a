"""
OAuth Routes - calendar connection flow

Provides endpoints:
- GET /oauth/{provider}/authorize - Start authorization (owner)
- GET /oauth/{provider}/callback - Provider redirect target
- GET /integrations - Connected providers, no secrets (owner)
- DELETE /integrations/{provider} - Disconnect (owner)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from availnow.api.deps import get_current_user_id, get_oauth_manager, get_token_store
from availnow.errors import InterruptedFlowError
from availnow.oauth_manager import OAuthManager
from availnow.storage.tokens import TokenStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/oauth/{provider}/authorize")
async def authorize(
    provider: str,
    user_id: str = Depends(get_current_user_id),
    manager: OAuthManager = Depends(get_oauth_manager),
):
    request = manager.begin_authorization(user_id, provider)
    return request.to_dict()


@router.get("/oauth/{provider}/callback")
async def oauth_callback(
    provider: str,
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
    error_description: str | None = Query(None),
    manager: OAuthManager = Depends(get_oauth_manager),
):
    if error:
        logger.warning(f"{provider} authorization denied: {error}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_description or f"Authorization failed: {error}",
        )
    if not code:
        raise InterruptedFlowError("Missing authorization code")

    result = await manager.complete_authorization(provider, code, state)
    return result.to_dict()


@router.get("/integrations")
async def list_integrations(
    user_id: str = Depends(get_current_user_id),
    tokens: TokenStore = Depends(get_token_store),
):
    return {"integrations": [c.to_public_dict() for c in tokens.list_for_user(user_id)]}


@router.delete("/integrations/{provider}")
async def disconnect(
    provider: str,
    user_id: str = Depends(get_current_user_id),
    manager: OAuthManager = Depends(get_oauth_manager),
):
    await manager.disconnect(user_id, provider)
    return {"success": True, "provider": provider}
