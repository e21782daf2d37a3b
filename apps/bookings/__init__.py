"""Bookings app package.

This app encapsulates the booking domain: the booking model, the
availability checker and the create/cancel workflows. Bookings enforce
the no-overlap invariant at commit time by locking the unit row and
re-validating the date predicate inside the inserting transaction.
"""
