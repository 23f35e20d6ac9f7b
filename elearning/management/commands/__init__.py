"""
E-Learning Management Commands Package - Lingua

Django management commands for catalog setup and payment operations.

Features:
- seed_level_packages: Create the six default CEFR level packages
- purge_stale_orders: Delete cancelled/expired orders past their retention time
- await_payment: Poll PayOS for one order until it settles (operator tool)

Author: Lingua Development Team
Version: 1.0.0
"""
