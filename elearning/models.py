"""
E-Learning Application Models Registry

This module serves as the central models registry for the E-Learning application.
It imports and exposes all models from the logical submodules (catalog,
enrollments, payments) to ensure they are properly registered with Django's
ORM system.

Architecture:
- catalog/: Level packages and courses that can be purchased
- enrollments/: Course and level entitlements granted after payment
- payments/: PayOS payment orders

Author: Lingua Development Team
Version: 1.0.0
"""

# Import all catalog models for registration with Django ORM
from .catalog.models import *

# Import all enrollment models for registration with Django ORM
from .enrollments.models import *

# Import all payment models for registration with Django ORM
from .payments.models import *
