from __future__ import annotations

import logging
import time
from typing import Dict, Optional

import jwt
import requests

from iot_marketplace.exceptions import AuthenticationError, HttpError


def request_access_token(
    session: requests.Session,
    marketplace_uri: str,
    client_id: str,
    client_secret: str,
    proxies: Optional[Dict[str, str]] = None,
    timeout: float = 30,
) -> str:
    """
    Exchange consumer credentials for a marketplace access token

    Returns:
        The raw bearer token
    """
    url = f"{marketplace_uri}/accessToken"
    params = {"clientId": client_id, "clientSecret": client_secret}
    resp = session.get(url, params=params, proxies=proxies or {}, timeout=timeout)
    logging.info("Access token GET %s -> %s", url, resp.status_code)

    if resp.status_code in (401, 403):
        raise AuthenticationError(f"Marketplace rejected credentials of {client_id}")
    if resp.status_code >= 400:
        raise HttpError(url, resp.status_code, resp.text)

    token = resp.text.strip()
    if not token:
        raise AuthenticationError(f"Marketplace returned an empty token for {client_id}")
    return token


def read_token_claims(token: str) -> Dict:
    """Claims of a JWT access token, without signature verification"""
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        # Not a JWT; the marketplace may hand out opaque tokens
        return {}


def token_expiry(token: str) -> Optional[float]:
    exp = read_token_claims(token).get("exp")
    return float(exp) if exp is not None else None


def is_token_expired(expires_at: Optional[float], leeway: float = 30) -> bool:
    if expires_at is None:
        return False
    return time.time() >= expires_at - leeway
