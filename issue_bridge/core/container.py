"""Dependency injection container for the application."""

from typing import List

from dependency_injector import containers, providers

from issue_bridge.core.cache import ResultCache
from issue_bridge.core.config import Settings
from issue_bridge.core.logging import get_logger
from issue_bridge.models.account import Account, load_accounts
from issue_bridge.services.jira.client import JiraClient
from issue_bridge.services.jira.dispatcher import MultiAccountDispatcher
from issue_bridge.services.jira.orchestrator import IssueOrchestrator
from issue_bridge.services.jira.queue import QueueRegistry
from issue_bridge.services.jira.transport import HttpxExchange, RetryingTransport

logger = get_logger(__name__)


def configured_accounts(settings: Settings) -> List[Account]:
    """Accounts from ``settings.accounts_file``, or none if unset."""
    if not settings.accounts_file:
        logger.warning("No accounts file configured")
        return []
    accounts = load_accounts(settings.accounts_file)
    logger.info("Accounts loaded", accounts=[a.alias for a in accounts])
    return accounts


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    accounts = providers.Singleton(
        configured_accounts,
        settings=settings,
    )

    # Result cache (process-wide)
    cache = providers.Singleton(
        ResultCache,
        ttl_ms=settings.provided.cache_ttl_ms,
    )

    # One queue per account alias
    queue_registry = providers.Singleton(
        QueueRegistry,
    )

    exchange = providers.Singleton(
        HttpxExchange,
        timeout=settings.provided.request_timeout,
        log_requests_responses=settings.provided.log_requests_responses,
    )

    transport = providers.Singleton(
        RetryingTransport,
        exchange=exchange,
        max_retries=settings.provided.max_retries,
        backoff_base_ms=settings.provided.backoff_base_ms,
        backoff_cap_ms=settings.provided.backoff_cap_ms,
    )

    dispatcher = providers.Singleton(
        MultiAccountDispatcher,
        accounts=accounts,
        registry=queue_registry,
        transport=transport,
        api_base_path=settings.provided.api_base_path,
    )

    client = providers.Singleton(
        JiraClient,
        dispatcher=dispatcher,
        log_images_fetch=settings.provided.log_images_fetch,
    )

    orchestrator = providers.Singleton(
        IssueOrchestrator,
        client=client,
        cache=cache,
        registry=queue_registry,
    )


# Global container instance
container = Container()
