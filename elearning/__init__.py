"""
E-Learning Package - Lingua English Learning Marketplace

This package contains the modules of the Lingua course marketplace backend:
catalog, purchase flow via PayOS and the course access checks built on top
of the resulting enrollments.

Structure:
- catalog/: Level packages (A1-C2) and courses
- enrollments/: Entitlement granting and course access guard
- payments/: Order registry, PayOS reconciliation and notifications
- management/: Django management commands

Author: Lingua Development Team
Version: 1.0.0
"""
