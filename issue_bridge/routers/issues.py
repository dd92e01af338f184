"""Issue tracker routes: one-shot calls into the orchestrator."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

import httpx

from issue_bridge.core.container import container
from issue_bridge.core.logging import get_logger
from issue_bridge.services.jira.dispatcher import TrackerResult
from issue_bridge.services.jira.exceptions import TrackerError
from issue_bridge.services.jira.orchestrator import IssueOrchestrator

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["issues"])


class SearchRequest(BaseModel):
    jql: str
    limit: Optional[int] = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)
    fields: List[str] = Field(default_factory=list)
    expand: List[str] = Field(default_factory=list)
    account: Optional[str] = None
    refresh: bool = False


class UpdateFieldsRequest(BaseModel):
    fields: Dict[str, Any]
    account: Optional[str] = None


class ImageRequest(BaseModel):
    url: str = Field(min_length=1)
    account: str = Field(min_length=1)


def _success(result: TrackerResult) -> Dict[str, Any]:
    return {"success": True, "account": result.account.alias, "data": result.data}


def _failure(error: Exception) -> JSONResponse:
    """Map a tracker or transport error to an error payload."""
    if isinstance(error, TrackerError):
        status_code = error.status if 400 <= error.status < 600 else 502
    else:
        status_code = 502
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": str(error) or type(error).__name__},
    )


@router.get("/issues/{key}")
async def fetch_issue(
    key: str,
    fields: Optional[str] = None,
    account: Optional[str] = None,
    refresh: bool = False,
    orchestrator: IssueOrchestrator = Depends(lambda: container.orchestrator())
):
    """Fetch one issue, served from the result cache when fresh."""
    try:
        result = await orchestrator.fetch_issue(
            key,
            fields=[f for f in (fields or "").split(",") if f],
            account=orchestrator.resolve_account(account),
            refresh=refresh,
        )
        return _success(result)
    except (TrackerError, httpx.HTTPError) as e:
        return _failure(e)


@router.post("/search")
async def search(
    request: SearchRequest,
    orchestrator: IssueOrchestrator = Depends(lambda: container.orchestrator())
):
    """Run a JQL search across accounts."""
    try:
        result = await orchestrator.search(
            request.jql,
            limit=request.limit,
            offset=request.offset,
            fields=request.fields,
            expand=request.expand,
            account=orchestrator.resolve_account(request.account),
            refresh=request.refresh,
        )
        return _success(result)
    except (TrackerError, httpx.HTTPError) as e:
        return _failure(e)


@router.put("/issues/{key}/fields")
async def update_fields(
    key: str,
    request: UpdateFieldsRequest,
    orchestrator: IssueOrchestrator = Depends(lambda: container.orchestrator())
):
    """Update issue fields; cached fetches of the issue are invalidated."""
    try:
        result = await orchestrator.update_fields(
            key,
            request.fields,
            account=orchestrator.resolve_account(request.account),
        )
        return _success(result)
    except (TrackerError, httpx.HTTPError) as e:
        return _failure(e)


@router.post("/images")
async def fetch_image(
    request: ImageRequest,
    orchestrator: IssueOrchestrator = Depends(lambda: container.orchestrator())
):
    """Fetch an image hosted on an account as a data URI."""
    try:
        account = orchestrator.resolve_account(request.account)
        data_uri = await orchestrator.fetch_image(request.url, account)
        return {"success": True, "account": account.alias, "data": data_uri}
    except (TrackerError, httpx.HTTPError) as e:
        return _failure(e)
