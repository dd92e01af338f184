"""Result cache and account side-cache routes."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from typing import List

from issue_bridge.core.container import container
from issue_bridge.core.logging import get_logger
from issue_bridge.services.jira.orchestrator import IssueOrchestrator

logger = get_logger(__name__)
router = APIRouter(prefix="/api/cache", tags=["cache"])


class AccountCacheRefreshRequest(BaseModel):
    statuses: List[str] = Field(default_factory=list)


@router.get("/{fingerprint:path}/age")
async def cache_age(
    fingerprint: str,
    orchestrator: IssueOrchestrator = Depends(lambda: container.orchestrator())
):
    """Age of a cached result, for "Last update" footers."""
    return {"fingerprint": fingerprint, "age": orchestrator.cache_age(fingerprint)}


@router.delete("/{fingerprint:path}")
async def invalidate(
    fingerprint: str,
    orchestrator: IssueOrchestrator = Depends(lambda: container.orchestrator())
):
    """Drop one cached result so the next read refetches it."""
    deleted = orchestrator.invalidate(fingerprint)
    logger.info("Cache entry invalidated", fingerprint=fingerprint, deleted=deleted)
    return {"success": True, "deleted": deleted}


@router.post("/accounts/refresh")
async def refresh_account_caches(
    request: AccountCacheRefreshRequest,
    orchestrator: IssueOrchestrator = Depends(lambda: container.orchestrator())
):
    """Rebuild custom field maps and status colors for every account."""
    columns = await orchestrator.refresh_account_caches(request.statuses)
    return {
        "success": True,
        "columns": columns,
        "accounts": {
            account.alias: account.cache.model_dump()
            for account in orchestrator.accounts
        },
    }
