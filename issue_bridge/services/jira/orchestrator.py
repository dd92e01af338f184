"""Cache-aware entry point for the tracker integration.

The orchestrator is the single process-wide owner of the queue registry,
the dispatcher, the client and the result cache. Reads go through the
result cache: a live entry is served directly (a cached error is raised
again), otherwise the request is dispatched and its outcome, success or
error, is stored before being returned.

Concurrent callers asking for the same uncached fingerprint each issue their
own request; the last one to finish wins the cache slot.
"""

from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

import httpx

from issue_bridge.constants import DEFAULT_SEARCH_FIELDS, DEFAULT_SEARCH_LIMIT
from issue_bridge.core.cache import CacheEntry, ResultCache
from issue_bridge.core.logging import get_logger
from issue_bridge.models.account import Account
from issue_bridge.services.jira.client import JiraClient
from issue_bridge.services.jira.dispatcher import TrackerResult
from issue_bridge.services.jira.exceptions import (
    CachedTrackerError,
    TrackerError,
    UnknownAccountError,
)
from issue_bridge.services.jira.fingerprint import (
    issue_fingerprint,
    issue_prefix,
    search_fingerprint,
)
from issue_bridge.services.jira.queue import QueueRegistry

logger = get_logger(__name__)


class IssueOrchestrator:
    """Process-wide facade used by rendering collaborators and the HTTP API."""

    def __init__(self, client: JiraClient, cache: ResultCache, registry: QueueRegistry):
        self.client = client
        self.cache = cache
        self.registry = registry

    @property
    def accounts(self) -> List[Account]:
        return self.client.accounts

    def resolve_account(self, alias: Optional[str]) -> Optional[Account]:
        """Account with the given alias; None means "any account".

        Raises:
            UnknownAccountError: no account has that alias
        """
        if not alias:
            return None
        for account in self.accounts:
            if account.alias == alias:
                return account
        raise UnknownAccountError(alias)

    async def _cached(self, fingerprint: str, refresh: bool,
                      fetch: Callable[[], Awaitable[TrackerResult]]) -> TrackerResult:
        if refresh:
            self.cache.delete(fingerprint)
        else:
            entry = self.cache.get(fingerprint)
            if entry is not None:
                return self._replay(entry)

        try:
            result = await fetch()
        except (TrackerError, httpx.HTTPError) as e:
            self.cache.add(fingerprint, str(e) or type(e).__name__, is_error=True,
                           status=getattr(e, "status", 0))
            logger.warning("Tracker request failed", fingerprint=fingerprint, error=str(e))
            raise

        return self.cache.add(fingerprint, result).data

    @staticmethod
    def _replay(entry: CacheEntry) -> TrackerResult:
        if entry.is_error:
            raise CachedTrackerError(entry.error_message, status=entry.status)
        return entry.data

    # ------------------------------------------------------------------
    # Inbound operations
    # ------------------------------------------------------------------

    async def fetch_issue(self, key: str, fields: Optional[Iterable[str]] = None,
                          account: Optional[Account] = None,
                          refresh: bool = False) -> TrackerResult:
        fields = list(fields or [])
        return await self._cached(
            issue_fingerprint(key, fields, account),
            refresh,
            lambda: self.client.fetch_issue(key, fields, account=account),
        )

    async def search(self, jql: str, limit: Optional[int] = None, offset: int = 0,
                     fields: Optional[Iterable[str]] = None,
                     expand: Optional[Iterable[str]] = None,
                     account: Optional[Account] = None,
                     refresh: bool = False) -> TrackerResult:
        """Cached JQL search.

        Defaults are filled in before the fingerprint is taken, so a search
        with an explicit default limit shares the entry of one without.
        """
        limit = limit or DEFAULT_SEARCH_LIMIT
        fields = list(fields or DEFAULT_SEARCH_FIELDS)
        expand = list(expand or [])
        return await self._cached(
            search_fingerprint(jql, limit, offset, fields, expand, account),
            refresh,
            lambda: self.client.search(jql, limit=limit, offset=offset, fields=fields,
                                       expand=expand, account=account),
        )

    async def update_fields(self, key: str, field_map: Dict[str, Any],
                            account: Optional[Account] = None) -> TrackerResult:
        """Write fields and drop every cached fetch of that issue."""
        result = await self.client.update_fields(key, field_map, account=account)
        self.cache.clear_prefix(issue_prefix(key))
        return result

    async def fetch_image(self, url: str, account: Account) -> Optional[str]:
        return await self.client.fetch_image(url, account)

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    def cache_age(self, fingerprint: str) -> str:
        return self.cache.get_time(fingerprint)

    def invalidate(self, fingerprint: str) -> bool:
        return self.cache.delete(fingerprint)

    async def refresh_account_caches(self, statuses: Iterable[str] = ()) -> List[str]:
        """Rebuild per-account side caches.

        Custom field maps are refreshed for every account; status colors are
        looked up for ``statuses`` on every account that does not know them
        yet. Returns the custom field column list.
        """
        columns = await self.client.update_custom_fields_cache()
        for status in statuses:
            for account in self.accounts:
                try:
                    await self.client.update_status_color_cache(status, account)
                except (TrackerError, httpx.HTTPError) as e:
                    logger.warning("Status color lookup failed",
                                   account=account.alias,
                                   status=status,
                                   error=str(e))
        return columns

    def stats(self) -> Dict[str, Any]:
        """Queue and cache counters for the health endpoint."""
        queues = {}
        for account in self.accounts:
            if account.alias in self.registry:
                queue = self.registry.get(account)
                queues[account.alias] = {"active": queue.active, "pending": queue.pending}
        return {
            "accounts": [a.alias for a in self.accounts],
            "cache_entries": len(self.cache),
            "queues": queues,
        }
