"""OAuth authorization-code flow: build the authorize URL, trade a code for a token."""

import logging
from urllib.parse import urlencode

import requests

from . import config
from .errors import AuthError

logger = logging.getLogger(__name__)

TOKEN_URL = "/login/oauth/access_token"


def authorize_url(client_id: str, redirect_uri: str, scope=None, state=None) -> str:
    params = {"client_id": client_id, "redirect_uri": redirect_uri,
              "scope": scope or config.OAUTH_SCOPE}
    if state:
        params["state"] = state
    return f"{config.WEB_URL}/login/oauth/authorize?{urlencode(params)}"


def exchange_code(code: str, client_id=None, client_secret=None, session=None) -> str:
    """Access token for `code`. Every failure surfaces as AuthError."""
    if not code:
        raise AuthError("Authorization code is required")
    client_id = client_id or config.CLIENT_ID
    client_secret = client_secret or config.CLIENT_SECRET
    if not (client_id and client_secret):
        raise AuthError("GITHUB_CLIENT_ID / GITHUB_CLIENT_SECRET are not set")

    s = session or requests.Session()
    try:
        r = s.post(f"{config.WEB_URL}{TOKEN_URL}",
                   json={"client_id": client_id, "client_secret": client_secret, "code": code},
                   headers={"Accept": "application/json", "User-Agent": config.USER_AGENT},
                   timeout=config.TIMEOUT)
        r.raise_for_status()
        data = r.json()
    except requests.HTTPError as e:
        raise AuthError(f"Token exchange failed: HTTP {e.response.status_code}",
                        e.response.status_code) from e
    except (requests.RequestException, ValueError) as e:
        raise AuthError(f"Token exchange failed: {e}") from e

    if data.get("error"):
        logger.error("GitHub OAuth error: %s", data)
        raise AuthError(data.get("error_description") or data["error"], r.status_code)
    token = data.get("access_token")
    if not token:
        raise AuthError("Token exchange returned no access_token", r.status_code)
    return token
