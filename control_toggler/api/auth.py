"""
SNWS2 Request Signing

Builds the X-SN-Date and Authorization headers for API requests using
HMAC-SHA256 signatures over a canonical form of each request.
"""

import hashlib
import hmac
from datetime import datetime, timezone
from urllib.parse import quote

import httpx

from control_toggler.common.exceptions import InvalidCredentialsError
from control_toggler.common.timestamp import http_date, signing_date, signing_timestamp

SCHEME = "SNWS2"
SIGNATURE_ALGORITHM = "SNWS2-HMAC-SHA256"
SIGNING_KEY_SUFFIX = "snws2_request"
EMPTY_STRING_SHA256_HEX = hashlib.sha256(b"").hexdigest()

X_SN_DATE = "X-SN-Date"
AUTHORIZATION = "Authorization"


def _uri_encode(value: str) -> str:
    return quote(str(value), safe="-_.~")


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


class AuthorizationV2Builder:
    """
    Signs requests with a token id and secret.

    Usage:
        auth = AuthorizationV2Builder("token").save_signing_key("secret")
        headers = auth.build_headers("GET", url, params)
    """

    def __init__(self, token_id: str | None, secret: str | None = None):
        self.token_id = token_id
        self._secret = secret

    def save_signing_key(self, secret: str | None) -> "AuthorizationV2Builder":
        self._secret = secret
        return self

    @property
    def signing_key_valid(self) -> bool:
        """True if both a token id and a secret are configured"""
        return bool(self.token_id) and bool(self._secret)

    def signing_key(self, ts: datetime) -> bytes:
        """Derive the day-scoped signing key"""
        date_key = _hmac(f"{SCHEME}{self._secret}".encode("utf-8"), signing_date(ts))
        return _hmac(date_key, SIGNING_KEY_SUFFIX)

    def build_headers(
        self,
        method: str,
        url: httpx.URL,
        params: list[tuple[str, str]] | None = None,
        content_type: str | None = None,
        date: datetime | None = None,
    ) -> dict[str, str]:
        """
        Compute the signing headers for one request.

        Args:
            method: HTTP method
            url: Request URL (query string not included; see params)
            params: Query or form parameters, both signed as query parameters
            content_type: Content-Type header for non-GET requests
            date: Request date, defaults to now

        Returns:
            Dict with X-SN-Date and Authorization headers
        """
        if not self.signing_key_valid:
            raise InvalidCredentialsError()

        ts = date or datetime.now(timezone.utc)
        sn_date = http_date(ts)

        headers = {"host": url.netloc.decode("ascii"), "x-sn-date": sn_date}
        if content_type:
            headers["content-type"] = content_type
        signed_names = sorted(headers)

        canonical_request = self.canonical_request(
            method, url.path, params or [], headers, signed_names
        )
        string_to_sign = "\n".join((
            SIGNATURE_ALGORITHM,
            signing_timestamp(ts),
            hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
        ))
        signature = hmac.new(
            self.signing_key(ts), string_to_sign.encode("utf-8"), hashlib.sha256
        ).hexdigest()

        return {
            X_SN_DATE: sn_date,
            AUTHORIZATION: (
                f"{SCHEME} Credential={self.token_id},"
                f"SignedHeaders={';'.join(signed_names)},"
                f"Signature={signature}"
            ),
        }

    @staticmethod
    def canonical_request(
        method: str,
        path: str,
        params: list[tuple[str, str]],
        headers: dict[str, str],
        signed_names: list[str],
    ) -> str:
        query = "&".join(
            f"{_uri_encode(k)}={_uri_encode(v)}"
            for k, v in sorted(params, key=lambda kv: (kv[0], str(kv[1])))
        )
        canonical_headers = "".join(
            f"{name}:{headers[name].strip()}\n" for name in signed_names
        )
        return "\n".join((
            method.upper(),
            path,
            query,
            canonical_headers,
            ";".join(signed_names),
            EMPTY_STRING_SHA256_HEX,
        ))
