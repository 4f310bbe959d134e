"""
Flight escrow booking service.

Travelers book seats on scheduled flights and pay through a card authorization
hold. Held payments are captured once a flight reaches its minimum passenger
count, or released by the refund sweep when it does not.

Components:
1. Ledger store (SQLAlchemy) for aircraft, flights and bookings
2. Payment gateway adapter (Stripe manual-capture PaymentIntents)
3. Booking lifecycle engine, refund sweep and webhook reconciler
"""

__version__ = "0.1.0"
