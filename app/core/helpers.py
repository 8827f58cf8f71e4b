"""
Helper functions for common infrastructure operations.

This module provides domain-agnostic utility functions for:
- PII masking for log lines (emails, phone numbers)
- HTTP request helpers (client IP extraction)

Usage:
    from core.helpers import get_client_ip, mask_email

    logger.info("Enrollment requested", extra={"payer_email": mask_email(email)})
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from django.http import HttpRequest


def mask_email(email: str) -> str:
    """
    Mask email for logging.

    Keeps first character and domain visible.

    Args:
        email: Email address to mask

    Returns:
        Masked email (e.g., "j***@example.com")

    Example:
        masked = mask_email("john.doe@example.com")  # "j***@example.com"
    """
    if not email or "@" not in email:
        return "***"

    local, domain = email.rsplit("@", 1)

    if len(local) > 1:
        masked_local = local[0] + "***"
    else:
        masked_local = "***"

    return f"{masked_local}@{domain}"


def mask_phone(phone: str) -> str:
    """
    Mask phone number for logging.

    Keeps a leading "+" (if any) and the last 4 digits.

    Args:
        phone: Phone number to mask

    Returns:
        Masked phone (e.g., "+***-***-4567")
    """
    digits_only = re.sub(r"[^\d+]", "", phone or "")

    if len(digits_only.lstrip("+")) < 4:
        return "***"

    prefix = "+" if digits_only.startswith("+") else ""
    return f"{prefix}***-***-{digits_only[-4:]}"


def get_client_ip(request: HttpRequest) -> str:
    """
    Extract client IP from request, handling proxies.

    Checks X-Forwarded-For header for proxy chains.

    Args:
        request: Django HTTP request

    Returns:
        Client IP address string
    """
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        # Take the first IP in the chain (original client)
        ip = x_forwarded_for.split(",")[0].strip()
    else:
        ip = request.META.get("REMOTE_ADDR", "")
    return ip
