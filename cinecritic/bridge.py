"""
Catalog subscription bridge.
Keeps one live subscription against a CatalogStore for the lifetime of a view and
republishes each pushed snapshot as the current in-memory catalog.
"""

import asyncio  # async iteration over pushed snapshots
from enum import Enum  # bridge states
from typing import Callable, List, Optional, Tuple  # type hints

from loguru import logger  # console logging

from .errors import StoreError  # error taxonomy
from .store import CatalogStore, Snapshot, Unsubscribe  # store contract


class BridgeStatus(str, Enum):
	CLOSED = 'closed'  # no subscription open
	LOADING = 'loading'  # subscribed, first snapshot not yet received
	READY = 'ready'  # catalog holds the latest snapshot
	ERROR = 'error'  # the store subscription failed; no automatic retry


Listener = Callable[['CatalogBridge'], None]


class SubscriptionHandle:
	"""
	Token returned by CatalogBridge.open().

	Release it exactly once, either with close() or by leaving a `with` block.
	It is also an async iterable over applied snapshots: `async for snapshot in handle`.
	Only the newest snapshot is yielded when several arrive between iterations.
	"""

	def __init__(self, bridge: 'CatalogBridge'):
		self._bridge = bridge  # owning bridge
		self._closed = False  # set once by the bridge
		self._loop: Optional[asyncio.AbstractEventLoop] = None  # loop of the async consumer
		self._wakeup: Optional[asyncio.Event] = None  # signals a new snapshot or state change

	@property
	def closed(self) -> bool:
		return self._closed

	def close(self):
		self._bridge.close(self)

	def __enter__(self) -> 'SubscriptionHandle':
		return self

	def __exit__(self, exc_type, exc, tb):
		self.close()

	def __aiter__(self):
		return self.snapshots()

	async def snapshots(self):
		"""Yield each applied snapshot until the handle is closed."""
		self._loop = asyncio.get_running_loop()
		self._wakeup = asyncio.Event()
		seen_version = 0
		while not self._closed:
			bridge = self._bridge
			if bridge.status is BridgeStatus.ERROR:
				raise bridge.error
			if bridge.status is BridgeStatus.READY and bridge.version != seen_version:
				seen_version = bridge.version
				yield bridge.catalog
				continue
			self._wakeup.clear()
			await self._wakeup.wait()

	def _wake(self):
		"""Wake the async consumer; safe to call from any thread."""
		loop, wakeup = self._loop, self._wakeup
		if loop is None or wakeup is None:
			return
		try:
			loop.call_soon_threadsafe(wakeup.set)
		except RuntimeError:
			pass  # consumer loop already closed; nothing left to wake


class CatalogBridge:
	"""
	Republishes store snapshots into application state.

	- catalog: the last applied snapshot, replaced as a whole on every push
	- status: LOADING until the first snapshot, then READY (or ERROR)
	- listeners run after every state change so views can re-run the filter engine
	"""

	def __init__(self, store: CatalogStore):
		self.store = store  # catalog collaborator
		self._catalog: Snapshot = ()  # published snapshot
		self._status = BridgeStatus.CLOSED  # current state
		self._error: Optional[StoreError] = None  # set in ERROR state
		self._version = 0  # number of snapshots applied
		self._handle: Optional[SubscriptionHandle] = None  # active handle, if any
		self._unsubscribe: Optional[Unsubscribe] = None  # store-side release
		self._listeners: List[Listener] = []  # downstream observers

	@property
	def catalog(self) -> Snapshot:
		return self._catalog

	@property
	def status(self) -> BridgeStatus:
		return self._status

	@property
	def error(self) -> Optional[StoreError]:
		return self._error

	@property
	def version(self) -> int:
		return self._version

	@property
	def is_loading(self) -> bool:
		return self._status is BridgeStatus.LOADING

	def open(self) -> SubscriptionHandle:
		"""Establish the live subscription. Only one handle may be open at a time."""
		if self._handle is not None and not self._handle.closed:
			raise RuntimeError("Catalog subscription already open; close the current handle first")

		handle = SubscriptionHandle(self)
		self._handle = handle
		self._unsubscribe = None
		self._catalog = ()
		self._error = None
		self._status = BridgeStatus.LOADING
		logger.info("[Bridge] Opening catalog subscription")

		try:
			unsubscribe = self.store.subscribe(
				lambda snapshot: self._on_snapshot(handle, snapshot),
				lambda error: self._on_error(handle, error),
			)
		except Exception as e:
			self._on_error(handle, e)
			return handle

		if handle.closed:  # closed by a listener during the initial push
			unsubscribe()
		else:
			self._unsubscribe = unsubscribe
		return handle

	def close(self, handle: SubscriptionHandle):
		"""Release the subscription. Calling it again for the same handle does nothing."""
		if handle.closed:
			return
		handle._closed = True
		if handle is self._handle:
			unsubscribe, self._unsubscribe = self._unsubscribe, None
			if unsubscribe is not None:
				unsubscribe()
			self._status = BridgeStatus.CLOSED
			logger.info(f"[Bridge] Closed catalog subscription after {self._version} snapshots")
		handle._wake()

	def add_listener(self, listener: Listener) -> Callable[[], None]:
		"""Register a change listener; returns a function that removes it."""
		self._listeners.append(listener)

		def remove():
			if listener in self._listeners:
				self._listeners.remove(listener)

		return remove

	def _on_snapshot(self, handle: SubscriptionHandle, snapshot):
		if handle.closed or handle is not self._handle:
			logger.debug("[Bridge] Ignoring snapshot for a closed subscription")
			return
		self._catalog = tuple(snapshot)  # single assignment: readers see old or new, never partial
		self._status = BridgeStatus.READY
		self._error = None
		self._version += 1
		logger.debug(f"[Bridge] Applied snapshot #{self._version} with {len(self._catalog)} movies")
		self._notify()
		handle._wake()

	def _on_error(self, handle: SubscriptionHandle, error: Exception):
		if handle.closed or handle is not self._handle:
			return
		if not isinstance(error, StoreError):
			error = StoreError(f"Catalog subscription failed: {error}", cause=error)
		self._error = error
		self._status = BridgeStatus.ERROR
		logger.warning(f"[Bridge] Subscription error: {error}")
		self._notify()
		handle._wake()

	def _notify(self):
		for listener in list(self._listeners):
			listener(self)


def read_catalog(store: CatalogStore) -> Tuple[BridgeStatus, Snapshot, Optional[StoreError]]:
	"""
	Take one snapshot through a subscription that is released before returning.
	For views that render once per run (Streamlit scripts) and keep no handle between runs.
	"""
	bridge = CatalogBridge(store)
	with bridge.open():
		return bridge.status, bridge.catalog, bridge.error
