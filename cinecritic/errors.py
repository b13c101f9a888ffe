"""Custom exceptions for the CineCritic catalog."""

from typing import Dict, Optional


class CatalogError(Exception):
	"""Base exception for catalog errors."""
	pass


class ValidationError(CatalogError):
	"""Raised when an admin submission fails client-side validation."""

	def __init__(self, errors: Dict[str, str]):
		self.errors = dict(errors)  # field name -> human-readable reason
		fields = ', '.join(sorted(self.errors))
		super().__init__(f"Invalid submission: {fields}")


class NotFoundError(CatalogError):
	"""Raised when a requested entry id is absent from the store."""

	def __init__(self, entry_id: str):
		self.entry_id = entry_id
		super().__init__(f"Movie not found: {entry_id}")


class StoreError(CatalogError):
	"""Raised when a store read, write or subscription fails."""

	def __init__(self, message: str, cause: Optional[BaseException] = None):
		self.cause = cause
		super().__init__(message)


class AuthError(CatalogError):
	"""Raised when a credential check fails. The message never says why."""

	def __init__(self, message: str = "Invalid email or password"):
		super().__init__(message)
