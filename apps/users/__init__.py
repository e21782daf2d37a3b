"""Users app package.

Defines the custom user model used as AUTH_USER_MODEL and the user
directory consulted by the booking and payment core: renter
verification status and the list of administrator accounts that receive
notifications.
"""
