"""Notifications app package.

In-app notifications for owners, renters and administrators, fanned out
from booking, payment and handover events. Each notification is also
queued for e-mail delivery through Celery.
"""
