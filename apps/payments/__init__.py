"""Payments app package.

Order creation against a booking, the two provider adapters and the
reconciliation engine that turns provider confirmations (client verify,
webhook, status poll, periodic sweep) into Booking, Payment and Listing
state changes.
"""
