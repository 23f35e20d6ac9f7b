"""
PayOS Integration Package - Lingua
=============================================================

This package centralizes all PayOS-related logic for the Lingua backend.
PayOS is treated as an opaque remote service: we only create payment
requests, read their status, cancel them and verify the webhooks it sends.

Current Scope
--------------------
- client.py       → ``PayOSClient`` on the ``payos`` SDK (create session, query status, cancel)
- signatures.py   → webhook signature verification (the SDK signs requests)
- exceptions.py   → gateway exception hierarchy (retryable vs. terminal)

Design Rationale
----------------
- Core placement: Located in ``core/payos_integration`` so that the gateway
  is not tied to e-learning. The business reaction to payments (orders,
  enrollments) lives in ``elearning.payments``.
- No retries inside the client. Callers own their backoff policy
  (see ``elearning.payments.polling``).

Author: Lingua Development Team
Date: 2025-10-02
"""
