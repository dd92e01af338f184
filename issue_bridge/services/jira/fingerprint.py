"""Deterministic cache keys for logical requests.

Two requests built from the same parameters, account alias included, always
produce the same key, so one cached result serves both.
"""

from typing import Iterable, Optional, Union

from issue_bridge.models.account import Account

Part = Union[str, int, float, None, Iterable[str]]


def _part(value: Part) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)


def _alias(account: Optional[Account]) -> str:
    return account.alias if account is not None else ""


def build_fingerprint(kind: str, *parts: Part) -> str:
    """Join a request kind and its salient parameters with ``:``."""
    return ":".join([kind] + [_part(p) for p in parts])


def issue_fingerprint(key: str, fields: Optional[Iterable[str]] = None,
                      account: Optional[Account] = None) -> str:
    return build_fingerprint("issue", key, list(fields or []), _alias(account))


def search_fingerprint(jql: str, limit: Optional[int] = None, offset: int = 0,
                       fields: Optional[Iterable[str]] = None,
                       expand: Optional[Iterable[str]] = None,
                       account: Optional[Account] = None) -> str:
    return build_fingerprint("search", jql, limit, offset or 0,
                             list(fields or []), list(expand or []), _alias(account))


def issue_prefix(key: str) -> str:
    """Common prefix of every cached fetch of one issue."""
    return build_fingerprint("issue", key) + ":"
