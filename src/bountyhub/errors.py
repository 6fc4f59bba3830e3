"""Exception taxonomy shared by the stores, services and API layer."""

from __future__ import annotations


class BountyHubError(Exception):
    """Base class for all bountyhub errors."""


class NotFoundError(BountyHubError):
    """A referenced row does not exist."""


class InvalidStateError(BountyHubError):
    """A precondition on the current state of a record was violated.

    Raised for awards on already-awarded benefactors, awards into complete
    bounties, deletion of entries that have received funds, and pledges whose
    currency does not match an existing pledge.
    """


class UnauthorizedError(BountyHubError):
    """The caller has no identity, or lacks rights over the target record."""


class TransactionTimeoutError(BountyHubError):
    """A unit of work could not start in time, or ran past its timeout."""
