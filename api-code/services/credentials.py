from __future__ import annotations

import base64
import os
import re
from typing import Dict, Optional, Tuple
from urllib.parse import quote


_SCHEME_PATTERN = re.compile(r"^(?:https?|ssh|git)://", re.IGNORECASE)
_USERINFO_PATTERN = re.compile(r"^[^@/]+@")
_SCP_PATTERN = re.compile(r"^(?:[^@/]+@)?(?P<host>[^:/]+):(?P<path>[^/].*)$")
_URL_USERINFO_PATTERN = re.compile(r"(?P<scheme>https?://)[^/@\s]+@", re.IGNORECASE)
MASK = "****"


def is_local_remote(repository_url: str) -> bool:
    """file:// URLs and filesystem paths are used verbatim, without credentials."""
    value = (repository_url or "").strip()
    return (
        value.lower().startswith("file://")
        or os.path.isabs(value)
        or value.startswith(("./", "../"))
    )


def split_repository_reference(
    repository_url: str, default_host: str = "github.com"
) -> Tuple[str, str]:
    """Return ``(host, "owner/repo.git")`` for any supported reference form."""
    clean = (repository_url or "").strip()
    host = default_host

    if _SCHEME_PATTERN.match(clean):
        clean = _SCHEME_PATTERN.sub("", clean)
        clean = _USERINFO_PATTERN.sub("", clean)
        host, _, clean = clean.partition("/")
    else:
        scp = _SCP_PATTERN.match(clean)
        if scp:
            host, clean = scp.group("host"), scp.group("path")
        else:
            first, _, rest = clean.partition("/")
            # "github.com/owner/repo" without a scheme
            if "." in first and rest.count("/") >= 1:
                host, clean = first, rest

    path = clean.strip("/")
    if not path.endswith(".git"):
        path += ".git"
    return host, path


def build_remote_url(repository_url: str, default_host: str = "github.com") -> str:
    if is_local_remote(repository_url):
        return repository_url.strip()
    host, path = split_repository_reference(repository_url, default_host)
    return f"https://{host}/{path}"


def build_authenticated_url(
    repository_url: str, token: str, default_host: str = "github.com"
) -> str:
    """Return ``https://<token>@host/owner/repo.git`` for the given reference.

    Pure and never raises; malformed input produces a malformed URL that the
    following git call rejects.
    """
    if is_local_remote(repository_url):
        return repository_url.strip()
    host, path = split_repository_reference(repository_url, default_host)
    if not token:
        return f"https://{host}/{path}"
    return f"https://{quote(token, safe='')}@{host}/{path}"


def credential_environment(
    repository_url: str, token: Optional[str], default_host: str = "github.com"
) -> Dict[str, str]:
    """Environment overrides that authenticate HTTPS git calls via an extra header.

    The header is injected through ``GIT_CONFIG_*`` variables so the token
    stays out of argv and out of ``.git/config``.
    """
    env = {"GIT_TERMINAL_PROMPT": "0"}
    if not token or is_local_remote(repository_url):
        return env
    host, _ = split_repository_reference(repository_url, default_host)
    basic = base64.b64encode(f"x-access-token:{token}".encode()).decode()
    env.update(
        {
            "GIT_CONFIG_COUNT": "1",
            "GIT_CONFIG_KEY_0": f"http.https://{host}/.extraheader",
            "GIT_CONFIG_VALUE_0": f"Authorization: Basic {basic}",
        }
    )
    return env


def redact(text: Optional[str], *secrets: Optional[str]) -> str:
    if not text:
        return ""
    value = _URL_USERINFO_PATTERN.sub(lambda match: f"{match.group('scheme')}{MASK}@", text)
    for secret in secrets:
        if not secret:
            continue
        value = value.replace(secret, MASK)
        quoted = quote(secret, safe="")
        if quoted != secret:
            value = value.replace(quoted, MASK)
        encoded = base64.b64encode(f"x-access-token:{secret}".encode()).decode()
        value = value.replace(encoded, MASK)
    return value
