"""
Store errors.

Every store operation raises one of the four kinds below. They share
StoreError so the tool layer can report them uniformly.
"""


class StoreError(Exception):
	"""Base class for plan and task store failures."""
	kind = "store_error"


class NotFoundError(StoreError):
	"""Raised when a plan or task id is absent."""
	kind = "not_found"


class ValidationError(StoreError, ValueError):
	"""Raised when caller input is rejected before any write."""
	kind = "validation_error"


class StorageError(StoreError):
	"""Raised when an underlying key-value call fails."""
	kind = "storage_error"


class ConsistencyError(StoreError):
	"""Raised when an index and its records disagree on read."""
	kind = "consistency_error"
