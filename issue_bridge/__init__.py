"""Issue Bridge - throttled, retried, multi-account issue tracker access.

Usage:
    from issue_bridge.core.container import container

    orchestrator = container.orchestrator()
    result = await orchestrator.search("project = ABC", limit=20)
    result.data, result.account.alias
"""

__version__ = "1.0.0"
