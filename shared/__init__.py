"""
Shared Kernel

Building blocks used by every stay-management app: the domain error
taxonomy, date value objects and the at-rest encryption helpers.
"""
