"""Pydantic v2 models for configured tracker accounts."""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlsplit
from pydantic import BaseModel, Field, TypeAdapter, field_validator


class AuthenticationType(str, Enum):
    """How requests to an account are authenticated."""
    OPEN = "OPEN"                  # No Authorization header
    BASIC = "BASIC"                # username:password
    CLOUD = "CLOUD"                # email:api-token, sent as Basic
    BEARER_TOKEN = "BEARER_TOKEN"  # personal access token


class RateLimitSettings(BaseModel):
    """Per-account throttling policy applied by the account queue."""
    enabled: bool = True
    delay_ms: int = Field(default=100, ge=0)         # 100ms = 10 requests/second
    concurrent_slots: int = Field(default=1, ge=1)   # Sequential processing


class AccountCache(BaseModel):
    """Lazily populated lookups owned by one account.

    Written only by the client's refresh operations, kept for the process
    lifetime.
    """
    status_color: Dict[str, str] = Field(default_factory=dict)
    custom_fields_id_to_name: Dict[str, str] = Field(default_factory=dict)
    custom_fields_name_to_id: Dict[str, str] = Field(default_factory=dict)
    custom_fields_type: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class Account(BaseModel):
    """One configured connection profile to a remote issue tracker."""
    alias: str = "Default"
    host: str
    authentication_type: AuthenticationType = AuthenticationType.OPEN
    username: Optional[str] = None
    password: Optional[str] = None
    bare_token: Optional[str] = None
    priority: int = 1                 # Lower = tried first
    color: str = "#000000"
    use_2025_api: bool = False
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    cache: AccountCache = Field(default_factory=AccountCache, exclude=True)

    @field_validator("host")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def hosts_url(self, url: str) -> bool:
        """Whether ``url`` points at this account's server.

        Scheme and host:port must match exactly and the URL path must sit
        under the account path, compared segment by segment.
        """
        if not url:
            return False
        target = urlsplit(url)
        own = urlsplit(self.host)
        if target.scheme.lower() != own.scheme.lower() or target.netloc.lower() != own.netloc.lower():
            return False
        base_path = own.path.rstrip("/")
        return not base_path or target.path == base_path or target.path.startswith(base_path + "/")


def sort_by_priority(accounts: List[Account]) -> List[Account]:
    """Accounts in ascending priority order, stable for equal priorities."""
    return sorted(accounts, key=lambda a: a.priority)


def load_accounts(source: Union[str, Path, List[Dict[str, Any]]]) -> List[Account]:
    """Load and validate accounts from a JSON file path or a list of dicts.

    Raises:
        ValueError: if two accounts share an alias
    """
    if isinstance(source, (str, Path)):
        raw = json.loads(Path(source).read_text(encoding="utf-8"))
    else:
        raw = source

    accounts = TypeAdapter(List[Account]).validate_python(raw)

    seen = set()
    for account in accounts:
        if account.alias in seen:
            raise ValueError(f"Duplicate account alias: {account.alias}")
        seen.add(account.alias)

    return sort_by_priority(accounts)
