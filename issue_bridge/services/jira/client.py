"""Tracker API client.

Builds LogicalRequests for every supported REST call and hands them to the
dispatcher. The client is stateless apart from the per-account side caches
it refreshes on request.
"""

import re
from typing import Any, Dict, Iterable, List, Optional

import httpx

from issue_bridge.constants import (
    AVATAR_RESOLUTION,
    DEFAULT_SEARCH_FIELDS,
    DEFAULT_SEARCH_LIMIT,
    USER_SEARCH_LIMIT,
)
from issue_bridge.core.logging import get_logger
from issue_bridge.models.account import Account
from issue_bridge.models.request import LogicalRequest, PhysicalRequest
from issue_bridge.services.jira.dispatcher import (
    MultiAccountDispatcher,
    TrackerResult,
    build_headers,
    error_from_response,
)
from issue_bridge.services.jira.exceptions import TrackerError
from issue_bridge.services.jira.images import to_data_uri

logger = get_logger(__name__)

_CLOUD_ACCOUNT_ID = re.compile(r"^[0-9a-f]{24}$")


def user_reference(name_or_account_id: Optional[str]) -> Optional[Dict[str, str]]:
    """Server instances identify users by ``name``, Cloud by ``accountId``.

    Values that look like a Cloud account id (24 hex chars, no ``@``) are
    sent as ``accountId``; everything else as ``name``. Empty values give
    None, which clears the field.
    """
    if not name_or_account_id:
        return None
    if "@" in name_or_account_id or not _CLOUD_ACCOUNT_ID.match(name_or_account_id):
        return {"name": name_or_account_id}
    return {"accountId": name_or_account_id}


def _paging(offset: int, limit: int) -> Dict[str, str]:
    return {
        "startAt": str(offset) if offset > 0 else "",
        "maxResults": str(limit) if limit > 0 else "",
    }


class JiraClient:
    """Issue tracker REST operations on top of the multi-account dispatcher."""

    def __init__(self, dispatcher: MultiAccountDispatcher, log_images_fetch: bool = False):
        self.dispatcher = dispatcher
        self.log_images_fetch = log_images_fetch

    @property
    def accounts(self) -> List[Account]:
        return self.dispatcher.accounts

    async def _send(self, request: LogicalRequest) -> TrackerResult:
        return await self.dispatcher.dispatch(request)

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    async def fetch_issue(self, key: str, fields: Optional[Iterable[str]] = None,
                          account: Optional[Account] = None,
                          prefetch_images: bool = True) -> TrackerResult:
        """GET one issue. Icons and avatars hosted on the serving account are
        inlined as data URIs unless ``prefetch_images`` is False."""
        result = await self._send(LogicalRequest(
            method="GET",
            path=f"/issue/{key}",
            query_params={"fields": ",".join(fields or [])},
            account=account,
        ))
        if prefetch_images and isinstance(result.data, dict):
            await self.prefetch_issue_images(result.data, result.account)
        return result

    async def search(self, jql: str, limit: int = DEFAULT_SEARCH_LIMIT, offset: int = 0,
                     fields: Optional[Iterable[str]] = None,
                     expand: Optional[Iterable[str]] = None,
                     account: Optional[Account] = None,
                     prefetch_images: bool = True) -> TrackerResult:
        """Run a JQL search.

        Accounts on the 2025 API use ``/search/jql`` and page with
        ``nextPageToken`` instead of ``startAt``.
        """
        fields = list(fields or DEFAULT_SEARCH_FIELDS)
        expand = list(expand or [])
        common = {
            "jql": jql,
            "fields": ",".join(fields),
            "expand": ",".join(expand),
        }
        paging = _paging(offset, limit)
        query_params = {**common, **paging}
        query_params_2025 = {
            **common,
            "nextPageToken": paging["startAt"],
            "maxResults": paging["maxResults"],
        }

        result = await self._send(LogicalRequest(
            method="GET",
            path="/search",
            path_2025="/search/jql",
            query_params=query_params,
            query_params_2025=query_params_2025,
            account=account,
        ))

        if isinstance(result.data, dict):
            for issue in result.data.get("issues") or []:
                # Each issue remembers the account that served the search
                issue["account"] = result.account.alias
                if prefetch_images:
                    await self.prefetch_issue_images(issue, result.account)
        return result

    async def update_fields(self, key: str, field_map: Dict[str, Any],
                            account: Optional[Account] = None) -> TrackerResult:
        """PUT new values for the given issue fields."""
        return await self._send(LogicalRequest(
            method="PUT",
            path=f"/issue/{key}",
            body={"fields": field_map},
            account=account,
        ))

    async def fetch_image(self, url: str, account: Account) -> Optional[str]:
        """Fetch an image hosted on ``account`` as a data URI.

        URLs on other hosts are returned unchanged. Returns None when the
        image type is not recognised.

        Raises:
            TrackerError: the server answered with an error status
            httpx.HTTPError: no response was received
        """
        if not account.hosts_url(url):
            return url

        response = await self.dispatcher.send_physical(account, PhysicalRequest(
            method="GET",
            url=url,
            headers=build_headers(account),
        ))
        if self.log_images_fetch:
            logger.info("Image fetch",
                        account=account.alias,
                        url=url,
                        status=response.status)
        if response.status == 200:
            return to_data_uri(response.binary_body)
        raise error_from_response(response, account)

    async def prefetch_issue_images(self, issue: Dict[str, Any], account: Account) -> None:
        """Inline the issue type icon, people avatars and priority icon.

        An image that cannot be fetched keeps its original URL.
        """
        fields = issue.get("fields")
        if not isinstance(fields, dict):
            return

        async def inline(holder: Dict[str, Any], key: str) -> None:
            url = holder.get(key)
            if not url:
                return
            try:
                holder[key] = await self.fetch_image(url, account)
            except (TrackerError, httpx.HTTPError) as e:
                logger.warning("Image prefetch failed",
                               account=account.alias,
                               url=url,
                               error=str(e))

        if isinstance(fields.get("issuetype"), dict):
            await inline(fields["issuetype"], "iconUrl")
        for person in ("reporter", "assignee"):
            avatars = (fields.get(person) or {}).get("avatarUrls")
            if isinstance(avatars, dict):
                await inline(avatars, AVATAR_RESOLUTION)
        if isinstance(fields.get("priority"), dict):
            await inline(fields["priority"], "iconUrl")

    # ------------------------------------------------------------------
    # Account side caches
    # ------------------------------------------------------------------

    async def update_status_color_cache(self, status: str, account: Account) -> str:
        """Remember the status category color of ``status`` for ``account``."""
        if status in account.cache.status_color:
            return account.cache.status_color[status]
        result = await self._send(LogicalRequest(
            method="GET",
            path=f"/status/{status}",
            account=account,
        ))
        color = ((result.data or {}).get("statusCategory") or {}).get("colorName", "")
        account.cache.status_color[status] = color
        return color

    async def update_custom_fields_cache(self) -> List[str]:
        """Rebuild every account's custom field maps.

        Returns the flattened ``[id, NAME, id, NAME, ...]`` column list used
        for column lookups. An account that fails is logged and skipped.
        """
        columns: List[str] = []
        for account in self.accounts:
            try:
                result = await self._send(LogicalRequest(
                    method="GET",
                    path="/field",
                    account=account,
                ))
            except (TrackerError, httpx.HTTPError) as e:
                logger.error("Error while retrieving custom fields list of account",
                             account=account.alias,
                             error=str(e))
                continue

            cache = account.cache
            cache.custom_fields_id_to_name = {}
            cache.custom_fields_name_to_id = {}
            cache.custom_fields_type = {}
            for field in result.data or []:
                schema = field.get("schema") or {}
                custom_id = schema.get("customId")
                if not (field.get("custom") and custom_id):
                    continue
                custom_id = str(custom_id)
                cache.custom_fields_id_to_name[custom_id] = field["name"]
                cache.custom_fields_name_to_id[field["name"]] = custom_id
                cache.custom_fields_type[custom_id] = schema
                columns.extend([custom_id, field["name"].upper()])
        return columns

    # ------------------------------------------------------------------
    # Other REST calls
    # ------------------------------------------------------------------

    async def get_jql_autocomplete_field(self, field_name: str, field_value: str,
                                         account: Optional[Account] = None) -> Any:
        result = await self._send(LogicalRequest(
            method="GET",
            path="/jql/autocompletedata/suggestions",
            query_params={"fieldName": field_name, "fieldValue": field_value},
            account=account,
        ))
        return result.data

    async def test_connection(self, account: Account) -> bool:
        await self._send(LogicalRequest(method="GET", path="/project", account=account))
        return True

    async def get_logged_user(self, account: Optional[Account] = None) -> Any:
        result = await self._send(LogicalRequest(method="GET", path="/myself", account=account))
        return result.data

    async def get_dev_status(self, issue_id: str, account: Optional[Account] = None) -> Any:
        result = await self._send(LogicalRequest(
            method="GET",
            path="/rest/dev-status/latest/issue/summary",
            query_params={"issueId": issue_id},
            no_base_path=True,
            account=account,
        ))
        return result.data

    async def get_boards(self, project_key_or_id: str, limit: int = DEFAULT_SEARCH_LIMIT,
                         offset: int = 0, account: Optional[Account] = None) -> List[Any]:
        result = await self._send(LogicalRequest(
            method="GET",
            path="/rest/agile/1.0/board",
            query_params={"projectKeyOrId": project_key_or_id, **_paging(offset, limit)},
            no_base_path=True,
            account=account,
        ))
        return (result.data or {}).get("values") or []

    async def get_sprints(self, board_id: int, limit: int = DEFAULT_SEARCH_LIMIT,
                          offset: int = 0, state: Optional[Iterable[str]] = None,
                          account: Optional[Account] = None) -> List[Any]:
        result = await self._send(LogicalRequest(
            method="GET",
            path=f"/rest/agile/1.0/board/{board_id}/sprint",
            query_params={"state": ",".join(state or []), **_paging(offset, limit)},
            no_base_path=True,
            account=account,
        ))
        return (result.data or {}).get("values") or []

    async def get_sprint(self, sprint_id: int, account: Optional[Account] = None) -> Any:
        result = await self._send(LogicalRequest(
            method="GET",
            path=f"/rest/agile/1.0/sprint/{sprint_id}",
            no_base_path=True,
            account=account,
        ))
        return result.data

    async def update_issue_labels(self, key: str, labels: List[str],
                                  account: Optional[Account] = None) -> None:
        await self.update_fields(key, {"labels": labels}, account=account)

    async def get_issue_priorities(self, key: str, account: Optional[Account] = None) -> List[Any]:
        """Priorities allowed for the issue, read from its edit metadata."""
        result = await self._send(LogicalRequest(
            method="GET",
            path=f"/issue/{key}/editmeta",
            account=account,
        ))
        priority = ((result.data or {}).get("fields") or {}).get("priority") or {}
        return priority.get("allowedValues") or []

    async def update_issue_priority(self, key: str, priority_id: str,
                                    account: Optional[Account] = None) -> None:
        await self.update_fields(key, {"priority": {"id": priority_id}}, account=account)

    async def search_assignable_users(self, key: str, query: str,
                                      account: Optional[Account] = None) -> List[Any]:
        result = await self._send(LogicalRequest(
            method="GET",
            path="/user/assignable/search",
            query_params={"issueKey": key, "username": query,
                          "maxResults": str(USER_SEARCH_LIMIT)},
            account=account,
        ))
        data = result.data
        if isinstance(data, list):
            return data
        # Some Server versions answer {"0": {...}, "1": {...}}
        if isinstance(data, dict):
            return [data[k] for k in data if k.isdigit()]
        return []

    async def update_issue_assignee(self, key: str, user: Optional[str],
                                    account: Optional[Account] = None) -> None:
        logger.debug("Updating issue assignee", issue=key, assignee=user)
        await self.update_fields(key, {"assignee": user_reference(user)}, account=account)

    async def search_users(self, query: str, account: Optional[Account] = None) -> List[Any]:
        result = await self._send(LogicalRequest(
            method="GET",
            path="/user/picker",
            query_params={"query": query, "maxResults": str(USER_SEARCH_LIMIT),
                          "showAvatar": "true"},
            account=account,
        ))
        data = result.data
        if isinstance(data, dict) and isinstance(data.get("users"), list):
            return data["users"]
        if isinstance(data, list):
            return data
        return []

    async def get_user(self, username_or_key: str, account: Optional[Account] = None) -> Any:
        result = await self._send(LogicalRequest(
            method="GET",
            path="/user",
            query_params={"username": username_or_key},
            account=account,
        ))
        return result.data

    async def update_issue_people_fields(self, key: str,
                                         field_updates: Dict[str, Optional[str]],
                                         account: Optional[Account] = None) -> None:
        """Set several user-picker fields at once; None clears a field."""
        fields = {field_id: user_reference(user) for field_id, user in field_updates.items()}
        logger.debug("Updating issue people fields", issue=key, fields=list(fields))
        await self.update_fields(key, fields, account=account)
