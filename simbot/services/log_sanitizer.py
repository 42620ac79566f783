"""Masking helpers for PII that ends up in log lines."""

import re
from typing import Optional
from urllib.parse import urlparse


def mask_email(email: Optional[str]) -> str:
    """john.doe@example.com -> j***@example.com"""
    if not email or "@" not in email:
        return "***@***.***"
    local, _, domain = email.partition("@")
    if not local:
        return f"***@{domain}"
    return f"{local[0]}***@{domain}"


def mask_phone(phone: Optional[str]) -> str:
    """Keep only the last 4 digits."""
    if not phone or len(phone) < 4:
        return "******"
    return f"***{phone[-4:]}"


def mask_nip(nip: Optional[str]) -> str:
    # NIPs are never logged, not even partially
    return "****"


def mask_imei(imei: Optional[str]) -> str:
    if not imei or len(imei) < 4:
        return "***"
    return f"***{imei[-4:]}"


def mask_url(url: Optional[str]) -> str:
    """Drop path and query: https://checkout.stripe.com/c/pay/cs_x -> https://checkout.stripe.com/***"""
    if not url or not url.startswith("http"):
        return "***"
    try:
        parsed = urlparse(url)
    except ValueError:
        return "***"
    if not parsed.hostname:
        return "***"
    return f"{parsed.scheme}://{parsed.hostname}/***"


def mask_address(address: Optional[str]) -> str:
    """Show only the district (second comma-separated part)."""
    if not address:
        return "***"
    parts = address.split(",")
    if len(parts) >= 2:
        return f"***, {parts[1].strip()}, ***"
    return "***"


def mask_credit_card(card_number: Optional[str]) -> str:
    hidden = "****-****-****-****"
    if not card_number:
        return hidden
    digits = re.sub(r"[^0-9]", "", card_number)
    if len(digits) < 4:
        return hidden
    return f"****-****-****-{digits[-4:]}"
