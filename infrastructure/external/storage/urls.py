"""Public and private (signed, time-limited) resource URLs.

A private URL is the public URL plus ``e=<deadline>``, signed over exactly
that string, then suffixed with ``&token=<token>``. Nothing may be
re-encoded or reordered after signing.
"""
from __future__ import annotations

import string
from typing import Mapping, Optional, Sequence, Union
from urllib.parse import quote, quote_plus, unquote, urlencode

from application.ports.storage import Signer

QueryValues = Mapping[str, Union[str, Sequence[str]]]

# Path characters kept as written when the whole path consists of them
_VALID_PATH_CHARS = frozenset(string.ascii_letters + string.digits + "-._~!$&'()*+,;=:@[]%/")
# Characters left unescaped when a path has to be re-escaped
_PATH_SAFE = "/$&+,:;=@"


def url_encode_query(value: str) -> str:
    """Query-escape, then restore ``/`` and ``|`` and turn ``+`` into ``%20``.

    This is the service's canonical form for keys and raw query strings.
    """
    escaped = quote_plus(value, safe="")
    escaped = escaped.replace("%2F", "/")
    escaped = escaped.replace("%7C", "|")
    escaped = escaped.replace("+", "%20")
    return escaped


def encode_query(query: Optional[QueryValues]) -> str:
    """Encode a query mapping with keys sorted."""
    if not query:
        return ""
    return urlencode(sorted(query.items(), key=lambda kv: kv[0]), doseq=True)


def normalize_path(path: str) -> str:
    """Path as a URL parser would print it back.

    A path made only of characters that are legal in a URL path is kept as
    written, including existing escapes; anything else (spaces, non-ASCII)
    causes the decoded path to be escaped again.
    """
    if all(ch in _VALID_PATH_CHARS for ch in path):
        return path
    return quote(unquote(path), safe=_PATH_SAFE)


def make_public_url(domain: str, key: str) -> str:
    """Public URL for ``key`` with its path part normalized.

    A ``?`` or ``#`` in the key starts the query or fragment, which is kept
    verbatim.
    """
    cut = min((i for i in (key.find("?"), key.find("#")) if i >= 0), default=len(key))
    return f"{domain.rstrip('/')}/{normalize_path(key[:cut])}{key[cut:]}"


def _public_url_with_raw_query(domain: str, key: str, raw_query: str) -> str:
    url = f"{domain.rstrip('/')}/{url_encode_query(key)}"
    if raw_query:
        url += f"?{raw_query}"
    return url


def make_public_url_v2(domain: str, key: str, query: Optional[QueryValues] = None) -> str:
    """Public URL with the key escaped and an optional encoded query."""
    return _public_url_with_raw_query(domain, key, encode_query(query))


def make_public_url_v2_with_query_string(domain: str, key: str, query: str) -> str:
    """Public URL with the key escaped and a raw query string escaped as-is."""
    return _public_url_with_raw_query(domain, key, url_encode_query(query))


def _sign_url(signer: Signer, public_url: str, deadline: int) -> str:
    separator = "&" if "?" in public_url else "?"
    url_to_sign = f"{public_url}{separator}e={int(deadline)}"
    token = signer.sign(url_to_sign.encode("utf-8"))
    return f"{url_to_sign}&token={token}"


def make_private_url(signer: Signer, domain: str, key: str, deadline: int) -> str:
    """Signed URL; the key is not escaped."""
    return _sign_url(signer, make_public_url(domain, key), deadline)


def make_private_url_v2(
    signer: Signer,
    domain: str,
    key: str,
    deadline: int,
    query: Optional[QueryValues] = None,
) -> str:
    """Signed URL with the key escaped and an optional encoded query."""
    return _sign_url(signer, make_public_url_v2(domain, key, query), deadline)


def make_private_url_v2_with_query_string(
    signer: Signer,
    domain: str,
    key: str,
    query: str,
    deadline: int,
) -> str:
    """Signed URL with the key escaped and a raw query string."""
    return _sign_url(signer, make_public_url_v2_with_query_string(domain, key, query), deadline)
