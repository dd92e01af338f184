"""Request and response shapes exchanged between the orchestration layers.

A LogicalRequest is account agnostic. The dispatcher binds it to an account,
producing a PhysicalRequest, and every physical exchange yields a
TransportResponse, including failures that never reached the server.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from issue_bridge.models.account import Account


@dataclass
class LogicalRequest:
    """Abstract description of one tracker API operation."""
    method: str
    path: str
    path_2025: Optional[str] = None
    query_params: Dict[str, str] = field(default_factory=dict)
    query_params_2025: Optional[Dict[str, str]] = None
    body: Optional[Dict[str, Any]] = None
    account: Optional["Account"] = None   # None = try all accounts by priority
    no_base_path: bool = False


@dataclass
class PhysicalRequest:
    """Fully addressed HTTP exchange bound to one account."""
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Dict[str, Any]] = None


@dataclass
class TransportResponse:
    """Outcome of one physical exchange.

    ``status`` is 0 and ``error`` holds the transport exception when no
    response was received. Header names are lower-cased.
    """
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    json_body: Any = None
    text_body: Optional[str] = None
    binary_body: Optional[bytes] = None
    error: Optional[BaseException] = None

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    @property
    def is_json(self) -> bool:
        return "json" in self.content_type and self.json_body is not None

    @property
    def is_text(self) -> bool:
        return "text" in self.content_type and self.text_body is not None

    @property
    def is_transport_error(self) -> bool:
        return self.status == 0
