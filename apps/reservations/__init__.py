"""Reservations app package.

Holds the reservation store and the lifecycle resolver. A reservation keeps
an operator-set state (pending, confirmed, cancelled); its reported status
(upcoming, current, completed) is derived from the stay dates on every read
and is never written back.
"""
