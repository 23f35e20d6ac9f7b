"""
E-Learning Application Configuration

This module contains the Django application configuration for the Lingua
E-Learning system. It defines the application's metadata and default field
configuration.

The E-Learning application provides the course marketplace functionality:
level package and course catalog, PayOS checkout with payment
reconciliation, and course access control based on enrollments.

Author: Lingua Development Team
Version: 1.0.0
"""

from django.apps import AppConfig


class ElearningConfig(AppConfig):
    """
    Configuration class for the E-Learning Django application.

    Attributes:
        default_auto_field: Default primary key field type for models
        name: Application name for Django registration
        verbose_name: Human-readable application name for admin interface
    """

    default_auto_field: str = "django.db.models.BigAutoField"
    name: str = "elearning"
    verbose_name: str = "Lingua E-Learning"
