"""
Client IP extraction, local range classification and CDN country headers
"""
import ipaddress
import logging
from typing import Optional

from .models import COUNTRY_CODE_RE, RequestInfo

logger = logging.getLogger("geogate.security")

DEFAULT_CLIENT_IP = "127.0.0.1"

# Checked in order; X-Forwarded-For contributes its first element only
TRUST_HEADERS = (
    "cf-connecting-ip",   # Cloudflare
    "x-forwarded-for",    # Proxy
    "x-real-ip",          # Nginx
    "client-ip",
)

CDN_COUNTRY_HEADERS = (
    "cf-ipcountry",                 # Cloudflare
    "cloudfront-viewer-country",    # AWS CloudFront
    "x-vercel-ip-country",          # Vercel
    "x-country-code",               # generic
    "geoip-country-code",           # nginx/apache GeoIP module
    "x-geo-country",                # generic
)

# Cloudflare: XX = undetermined, T1 = Tor exit
CDN_REJECTED_CODES = {"XX", "T1"}


def is_valid_ip(value: Optional[str]) -> bool:
    if not value:
        return False
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def get_client_ip(request: Optional[RequestInfo] = None) -> str:
    """Return the first valid address from the trust headers, then the peer address"""
    if request is None:
        return DEFAULT_CLIENT_IP

    candidates = [request.header(h) for h in TRUST_HEADERS]
    candidates.append(request.client_host)

    for raw in candidates:
        if not raw:
            continue
        ip = raw.split(",")[0].strip()
        if is_valid_ip(ip):
            return ip

    return DEFAULT_CLIENT_IP


def is_local_ip(ip: str) -> bool:
    """True for loopback, private, link-local, reserved and unparseable addresses"""
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return True

    mapped = getattr(addr, "ipv4_mapped", None)
    if mapped is not None:
        addr = mapped

    return (
        addr.is_private
        or addr.is_loopback
        or addr.is_link_local
        or addr.is_reserved
        or addr.is_unspecified
    )


def normalize_cdn_country(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    code = value.strip().upper()
    if not COUNTRY_CODE_RE.match(code) or code in CDN_REJECTED_CODES:
        return None
    return code


def get_cdn_country(request: Optional[RequestInfo]) -> Optional[str]:
    """First acceptable country code injected by a CDN or proxy, if any"""
    if request is None:
        return None

    for header in CDN_COUNTRY_HEADERS:
        raw = request.header(header)
        code = normalize_cdn_country(raw)
        if code:
            logger.debug("CDN country header accepted", extra={"header": header, "country": code})
            return code
        if raw:
            logger.debug("CDN country header rejected", extra={"header": header, "value": raw})

    return None
