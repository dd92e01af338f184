"""Tests for account models, fingerprints and image helpers."""

import json

import pytest

from conftest import make_account
from issue_bridge.models.account import AuthenticationType, load_accounts
from issue_bridge.services.jira.fingerprint import (
    issue_fingerprint,
    issue_prefix,
    search_fingerprint,
)
from issue_bridge.services.jira.images import sniff_mime_type, to_data_uri

PNG = bytes.fromhex("89504E470D0A1A0A") + b"\x00" * 8


def test_load_accounts_sorts_by_priority(tmp_path) -> None:
    path = tmp_path / "accounts.json"
    path.write_text(json.dumps([
        {"alias": "Backup", "host": "https://backup.test/", "priority": 2},
        {"alias": "Main", "host": "https://main.test", "priority": 1,
         "authentication_type": "BEARER_TOKEN", "bare_token": "pat",
         "rate_limit": {"delay_ms": 250, "concurrent_slots": 2}},
    ]))

    accounts = load_accounts(str(path))

    assert [a.alias for a in accounts] == ["Main", "Backup"]
    assert accounts[0].authentication_type == AuthenticationType.BEARER_TOKEN
    assert accounts[0].rate_limit.delay_ms == 250
    assert accounts[1].host == "https://backup.test"
    assert accounts[1].rate_limit.enabled


def test_load_accounts_rejects_duplicate_alias() -> None:
    with pytest.raises(ValueError, match="Duplicate account alias"):
        load_accounts([{"alias": "A", "host": "https://a.test"},
                       {"alias": "A", "host": "https://b.test"}])


def test_account_cache_is_not_serialized() -> None:
    account = make_account("A")
    account.cache.status_color["Done"] = "green"

    assert "cache" not in account.model_dump()


def test_fingerprint_is_stable() -> None:
    account = make_account("A")

    assert search_fingerprint("project = PRJ", 10, 0, ["summary"], [], account) == \
        search_fingerprint("project = PRJ", 10, 0, ["summary"], [], account)
    assert issue_fingerprint("PRJ-1", ["summary"], account) == "issue:PRJ-1:summary:A"


def test_fingerprint_depends_on_account_and_parameters() -> None:
    a, b = make_account("A"), make_account("B")

    assert issue_fingerprint("PRJ-1", [], a) != issue_fingerprint("PRJ-1", [], b)
    assert issue_fingerprint("PRJ-1", [], None) != issue_fingerprint("PRJ-1", [], a)
    assert search_fingerprint("x", 10) != search_fingerprint("x", 20)
    assert issue_fingerprint("PRJ-1").startswith(issue_prefix("PRJ-1"))
    assert not issue_fingerprint("PRJ-10").startswith(issue_prefix("PRJ-1"))


def test_sniff_mime_type() -> None:
    assert sniff_mime_type(PNG) == "image/png"
    assert sniff_mime_type(b"GIF89a") == "image/gif"
    assert sniff_mime_type(b"<svg xmlns=...>") == "image/svg+xml"
    assert sniff_mime_type(b"nope") is None
    assert sniff_mime_type(b"") is None


def test_to_data_uri() -> None:
    assert to_data_uri(PNG).startswith("data:image/png;base64,iVBORw0KGgo")
    assert to_data_uri(b"plain text") is None


def test_hosts_url_matches_scheme_host_and_path() -> None:
    account = make_account("A", host="https://jira.example.test")

    assert account.hosts_url("https://jira.example.test/images/icon.png")
    assert account.hosts_url("https://JIRA.example.test/images/icon.png")
    assert not account.hosts_url("https://jira.example.test.evil/x.png")
    assert not account.hosts_url("https://jira.example.test@evil.test/x.png")
    assert not account.hosts_url("http://jira.example.test/images/icon.png")
    assert not account.hosts_url("https://jira.example.test:8443/images/icon.png")
    assert not account.hosts_url("")


def test_hosts_url_respects_context_path() -> None:
    account = make_account("A", host="https://corp.example.test/jira/")

    assert account.hosts_url("https://corp.example.test/jira/secure/icon.png")
    assert account.hosts_url("https://corp.example.test/jira")
    assert not account.hosts_url("https://corp.example.test/jira-other/icon.png")
    assert not account.hosts_url("https://corp.example.test/wiki/icon.png")
