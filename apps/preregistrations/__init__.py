"""Pre-registration app package.

An operator issues a time-limited invitation carrying a random token; the
guest redeems it once to create (or link) their reservation.
"""
