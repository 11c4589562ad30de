"""Calendar sync app package.

Polls the external channel's iCalendar feed, keeps the last good copy in the
cache and reconciles it against stored reservations and pre-registrations.
Nothing from the feed is written to the database except through an explicit
operator import.
"""
