"""Listings app package.

Holds the two rentable unit kinds (flats and PG rooms) and the listing
store through which the booking and payment core reads unit identity
and performs guarded writes on the ``booked`` flag and the flat handover
review status.
"""
