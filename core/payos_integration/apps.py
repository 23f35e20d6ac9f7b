"""
PayOS Integration AppConfig
===========================

Registers ``core.payos_integration`` with Django and checks at startup that
the merchant credentials are present. Missing credentials are only logged:
development and test runs work with a swapped-in client and never talk to
PayOS.

Author: Lingua Development Team
Date: 2025-10-02
"""

import logging

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


class PayOSIntegrationConfig(AppConfig):
    """
    App configuration for the ``core.payos_integration`` package.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "core.payos_integration"
    label = "payos_integration"
    verbose_name = "PayOS Integration"

    def ready(self):
        required = ("PAYOS_CLIENT_ID", "PAYOS_API_KEY", "PAYOS_CHECKSUM_KEY")
        missing = [name for name in required if not getattr(settings, name, "")]
        if missing:
            logger.warning("PayOS: missing configuration %s", ", ".join(missing))
