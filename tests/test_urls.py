import pytest

from modules.job_hunter.lib.urls import host_of, is_same_root, normalize_domain, normalize_url


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("https://Acme.COM/Careers/?utm_source=x#top", "https://acme.com/Careers"),
        ("HTTP://acme.com", "http://acme.com"),
        ("https://acme.com/jobs//", "https://acme.com/jobs"),
        ("https://user:pw@acme.com:8443/a", "https://acme.com:8443/a"),
        ("https://acme.com/a b", "https://acme.com/a%20b"),
    ],
)
def test_normalize_url_canonical_form(raw, expected):
    assert normalize_url(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "mailto:jobs@acme.com", "javascript:void(0)", "/relative/path", "ftp://acme.com/x", "http://[::1"])
def test_normalize_url_rejects_unusable_input(raw):
    assert normalize_url(raw) is None


@pytest.mark.parametrize(
    "raw",
    [
        "https://Acme.com/Careers/?q=1",
        "https://acme.com/jobs/%7Eteam/",
        "http://jobs.acme.com",
        "https://acme.com/a b/c/",
    ],
)
def test_normalize_url_is_idempotent(raw):
    once = normalize_url(raw)
    assert once is not None
    assert normalize_url(once) == once


def test_normalize_domain_strips_scheme_and_path():
    assert normalize_domain("https://Acme.com/careers?x=1") == "acme.com"
    assert normalize_domain("  globex.com ") == "globex.com"
    assert normalize_domain(None) == ""


def test_same_root_accepts_subdomains_only():
    assert is_same_root("https://careers.acme.com/jobs", "acme.com")
    assert is_same_root("https://acme.com/jobs", "www.acme.com")
    assert not is_same_root("https://notacme.com/jobs", "acme.com")
    assert not is_same_root("https://acme.com.evil.io/jobs", "acme.com")
    assert not is_same_root("not a url", "acme.com")


def test_host_of():
    assert host_of("https://Jobs.Acme.com:443/x") == "jobs.acme.com"
    assert host_of("") == ""
