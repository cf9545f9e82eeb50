"""SortGuard: race-resistant file organizer with rollback manifests."""

__version__ = "0.1.0"
