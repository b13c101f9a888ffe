"""
Catalog store module.
Holds CatalogEntry documents keyed by opaque ids and pushes the full ordered
snapshot (newest first) to live subscribers on every change.
"""

# Standard libs for ids, timestamps, file persistence and locking
import json  # JSON Lines persistence
import os  # atomic file replacement
import threading  # writes may arrive from UI worker threads
import uuid  # opaque document ids
from abc import ABC, abstractmethod  # store contract
from datetime import datetime, timedelta, timezone  # creation timestamps
from pathlib import Path  # filesystem-safe paths
from typing import Any, Callable, Dict, Mapping, Optional, Tuple  # type hints

# Console logging
from loguru import logger  # console logger

from .errors import NotFoundError, StoreError  # error taxonomy
from .models import EDITABLE_FIELDS, CatalogEntry  # data classes


Snapshot = Tuple[CatalogEntry, ...]
SnapshotCallback = Callable[[Snapshot], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)  # sort key for entries without a timestamp


def order_snapshot(entries) -> Snapshot:
	"""Order entries by descending creation time, the sole listing order."""
	return tuple(sorted(entries, key=lambda e: e.created_at or _EPOCH, reverse=True))


def _utc_now() -> datetime:
	return datetime.now(timezone.utc)


class CatalogStore(ABC):
	"""Contract every catalog backend implements."""

	@abstractmethod
	def create(self, fields: Mapping[str, Any]) -> str:
		"""Insert a new entry from its editable fields; returns the assigned id."""

	@abstractmethod
	def update(self, entry_id: str, fields: Mapping[str, Any]) -> None:
		"""Replace the given editable fields of an existing entry."""

	@abstractmethod
	def delete(self, entry_id: str) -> None:
		"""Remove an entry permanently."""

	@abstractmethod
	def get(self, entry_id: str) -> CatalogEntry:
		"""Return one entry or raise NotFoundError."""

	@abstractmethod
	def list_entries(self) -> Snapshot:
		"""Return the current ordered snapshot."""

	@abstractmethod
	def subscribe(self, on_snapshot: SnapshotCallback, on_error: Optional[ErrorCallback] = None) -> Unsubscribe:
		"""Start a live subscription; returns a function that ends it."""


class InMemoryCatalogStore(CatalogStore):
	"""
	Process-local catalog store.
	Pushes the current snapshot to a new subscriber immediately, then again after
	every successful write.
	"""

	def __init__(self, entries=(), clock: Callable[[], datetime] = _utc_now):
		self._clock = clock  # timestamp source (injectable for tests)
		self._lock = threading.RLock()  # guards entries and subscribers
		self._publish_lock = threading.RLock()  # one delivery round at a time, in commit order
		self._revision = 0  # bumped on every commit
		self._entries: Dict[str, CatalogEntry] = {}  # id -> entry
		self._subscribers: Dict[int, Tuple[SnapshotCallback, Optional[ErrorCallback]]] = {}  # token -> callbacks
		self._next_token = 0  # subscriber token counter
		self._last_created_at: Optional[datetime] = None  # keeps created_at strictly increasing
		for entry in entries:  # preload (e.g. from a file)
			if not entry.id:
				raise ValueError("Preloaded entries must carry an id")
			self._entries[entry.id] = entry
			if entry.created_at and (self._last_created_at is None or entry.created_at > self._last_created_at):
				self._last_created_at = entry.created_at

	# Writes

	def create(self, fields: Mapping[str, Any]) -> str:
		fields = self._check_fields(fields)
		with self._lock:
			entry_id = uuid.uuid4().hex[:20]  # opaque, document-store style id
			entry = CatalogEntry(id=entry_id, created_at=self._next_timestamp(), **fields)
			updated = dict(self._entries)
			updated[entry_id] = entry
			self._commit(updated)
		logger.info(f"[Store] Created movie '{entry.title}' ({entry_id})")
		self._publish()
		return entry_id

	def update(self, entry_id: str, fields: Mapping[str, Any]) -> None:
		fields = self._check_fields(fields)
		with self._lock:
			current = self._entries.get(entry_id)
			if current is None:
				raise NotFoundError(entry_id)
			updated = dict(self._entries)
			updated[entry_id] = current.with_fields(**fields)  # id and created_at untouched
			self._commit(updated)
		logger.info(f"[Store] Updated movie {entry_id} | fields={sorted(fields)}")
		self._publish()

	def delete(self, entry_id: str) -> None:
		with self._lock:
			if entry_id not in self._entries:
				raise NotFoundError(entry_id)
			updated = dict(self._entries)
			del updated[entry_id]
			self._commit(updated)
		logger.info(f"[Store] Deleted movie {entry_id}")
		self._publish()

	# Reads

	def get(self, entry_id: str) -> CatalogEntry:
		with self._lock:
			entry = self._entries.get(entry_id)
		if entry is None:
			raise NotFoundError(entry_id)
		return entry

	def list_entries(self) -> Snapshot:
		with self._lock:
			return order_snapshot(self._entries.values())

	def __len__(self) -> int:
		return len(self._entries)

	# Live subscription

	def subscribe(self, on_snapshot: SnapshotCallback, on_error: Optional[ErrorCallback] = None) -> Unsubscribe:
		with self._publish_lock:  # a concurrent publish cannot slip in before the initial snapshot
			with self._lock:
				token = self._next_token
				self._next_token += 1
				self._subscribers[token] = (on_snapshot, on_error)
				snapshot = order_snapshot(self._entries.values())
			logger.debug(f"[Store] Subscriber {token} attached | subscribers={len(self._subscribers)}")
			self._deliver(token, on_snapshot, on_error, snapshot)  # initial snapshot

		def unsubscribe():
			with self._lock:
				removed = self._subscribers.pop(token, None)
			if removed is not None:
				logger.debug(f"[Store] Subscriber {token} detached")

		return unsubscribe

	def subscriber_count(self) -> int:
		with self._lock:
			return len(self._subscribers)

	# Internals

	def _check_fields(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
		unknown = set(fields) - set(EDITABLE_FIELDS)
		if unknown:
			raise ValueError(f"Fields are not editable: {sorted(unknown)}")
		return dict(fields)

	def _next_timestamp(self) -> datetime:
		now = self._clock()
		if self._last_created_at is not None and now <= self._last_created_at:
			now = self._last_created_at + timedelta(microseconds=1)  # same-tick inserts stay ordered
		self._last_created_at = now
		return now

	def _commit(self, entries: Dict[str, CatalogEntry]):
		"""Swap in the new document set. Subclasses persist before swapping."""
		self._entries = entries
		self._revision += 1

	def _publish(self):
		"""
		Deliver the current snapshot to every subscriber.
		Rounds never interleave, and a round stops early once a newer commit exists,
		since that commit's own round will deliver the newer snapshot to everyone.
		"""
		with self._publish_lock:
			with self._lock:
				revision = self._revision
				snapshot = order_snapshot(self._entries.values())
				subscribers = list(self._subscribers.items())
			logger.debug(f"[Store] Publishing snapshot of {len(snapshot)} movies to {len(subscribers)} subscribers")
			for token, (on_snapshot, on_error) in subscribers:
				with self._lock:
					if self._revision != revision:
						logger.debug(f"[Store] Snapshot of revision {revision} superseded; stopping delivery")
						return
					if token not in self._subscribers:  # detached while we were publishing
						continue
				self._deliver(token, on_snapshot, on_error, snapshot)

	def _deliver(self, token: int, on_snapshot: SnapshotCallback, on_error: Optional[ErrorCallback], snapshot: Snapshot):
		try:
			on_snapshot(snapshot)
		except Exception as e:
			# A failing subscriber must not break the write that triggered it
			logger.warning(f"[Store] Subscriber {token} raised while handling a snapshot: {e}")
			if on_error is not None:
				on_error(StoreError("Snapshot delivery failed", cause=e))


class JsonlCatalogStore(InMemoryCatalogStore):
	"""
	Catalog store persisted to a JSON Lines file (one entry per line).
	Every write rewrites the file before the in-memory state changes, so a failed
	write leaves both the file and subscribers on the previous state.
	"""

	def __init__(self, filepath: str, clock: Callable[[], datetime] = _utc_now):
		self.filepath = Path(filepath)  # normalize path
		super().__init__(entries=self._load(self.filepath), clock=clock)
		logger.info(f"[Store] Opened {self.filepath} with {len(self)} movies")

	@staticmethod
	def _load(filepath: Path):
		if not filepath.exists():
			logger.info(f"[Store] No catalog file at {filepath}; starting empty")
			return []
		entries = []
		with open(filepath, 'r', encoding='utf-8') as f:
			for line_num, line in enumerate(f, 1):  # track line number for diagnostics
				line = line.strip()
				if not line:
					continue
				try:
					entry = CatalogEntry.from_dict(json.loads(line))
				except (json.JSONDecodeError, TypeError, ValueError) as e:
					logger.warning(f"[Store] Skipping invalid record at line {line_num}: {e}")
					continue
				if not entry.id:
					logger.warning(f"[Store] Skipping record without id at line {line_num}")
					continue
				entries.append(entry)
		return entries

	def _commit(self, entries: Dict[str, CatalogEntry]):
		tmp_path = self.filepath.with_suffix(self.filepath.suffix + '.tmp')
		try:
			self.filepath.parent.mkdir(parents=True, exist_ok=True)
			with open(tmp_path, 'w', encoding='utf-8') as f:
				for entry in order_snapshot(entries.values()):
					f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + '\n')
			os.replace(tmp_path, self.filepath)  # atomic swap
		except OSError as e:
			logger.error(f"[Store] Failed to write {self.filepath}: {e}")
			raise StoreError(f"Could not save catalog to {self.filepath}", cause=e) from e
		super()._commit(entries)
