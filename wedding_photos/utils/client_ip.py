"""
Client IP extraction behind proxies and load balancers.
"""
from typing import Optional

from fastapi import Request

# Checked in order; the first non-empty value wins
_FORWARDING_HEADERS = ("X-Real-IP", "CF-Connecting-IP", "True-Client-IP")


def get_client_ip(request: Request) -> Optional[str]:
    """
    Extract the originating client IP from a request.

    X-Forwarded-For is checked first ("client, proxy1, proxy2", so the first
    entry is the client), then X-Real-IP, CF-Connecting-IP and True-Client-IP,
    then the direct peer address.

    Note:
        These headers are client-controlled. The load balancer must strip
        them from external requests for the value to be trustworthy.

    Returns:
        Client IP string, or None when nothing is known
    """
    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        client_ip = x_forwarded_for.split(",")[0].strip()
        if client_ip:
            return client_ip

    for header in _FORWARDING_HEADERS:
        value = request.headers.get(header)
        if value and value.strip():
            return value.strip()

    if request.client:
        return request.client.host

    return None
