"""
Admin write path.
Validates submissions and passes create/update/delete straight through to the store.
The local catalog is never edited here; the next live snapshot is the source of truth.
"""

from loguru import logger  # console logging

from .errors import NotFoundError, StoreError  # error taxonomy
from .models import CatalogEntry, MovieForm  # data classes
from .store import CatalogStore  # store contract
from .validation import ensure_valid  # pre-submission checks


class AdminService:
	"""Create, edit and delete catalog entries on behalf of a signed-in admin."""

	def __init__(self, store: CatalogStore):
		self.store = store  # catalog collaborator

	def get(self, entry_id: str) -> CatalogEntry:
		"""Load an entry for the edit view (NotFoundError when it is gone)."""
		return self._call(f"load movie {entry_id}", self.store.get, entry_id)

	def create(self, form: MovieForm) -> str:
		"""Validate and insert a new entry; returns the store-assigned id."""
		ensure_valid(form)  # raises ValidationError before the store is touched
		entry_id = self._call("create movie", self.store.create, form.to_fields())
		logger.info(f"[Admin] Created '{form.title.strip()}' as {entry_id}")
		return entry_id

	def update(self, entry_id: str, form: MovieForm):
		"""Validate and replace every editable field of an existing entry."""
		ensure_valid(form)
		self._call(f"update movie {entry_id}", self.store.update, entry_id, form.to_fields())
		logger.info(f"[Admin] Updated {entry_id}")

	def delete(self, entry_id: str, confirmed: bool = False) -> bool:
		"""
		Delete an entry. Nothing is sent to the store unless the admin confirmed.
		Returns True when the delete was issued.
		"""
		if not confirmed:
			logger.info(f"[Admin] Delete of {entry_id} not confirmed; skipping")
			return False
		self._call(f"delete movie {entry_id}", self.store.delete, entry_id)
		logger.info(f"[Admin] Deleted {entry_id}")
		return True

	def _call(self, action: str, fn, *args):
		"""Run a store call once; anything but NotFoundError surfaces as StoreError."""
		try:
			return fn(*args)
		except (NotFoundError, StoreError):
			raise
		except Exception as e:
			logger.error(f"[Admin] Failed to {action}: {e}")
			raise StoreError(f"Failed to {action}", cause=e) from e
