"""
Shared filter/search state.
One FilterState is created per UI session and handed to every surface that reads
or writes the search box and the filter panel.
"""

from dataclasses import replace  # copy-on-write updates of the frozen criteria
from typing import Callable, List, Sequence  # type hints

from loguru import logger  # console logging

from .filters import filter_catalog  # pure filtering
from .models import CatalogEntry, FilterCriteria  # data classes


Listener = Callable[['FilterState'], None]


class FilterState:
	"""
	Holds the current FilterCriteria and search text.

	Reads return immutable values; every write replaces the whole value and then
	notifies listeners, so the engine downstream only ever sees complete states.
	"""

	def __init__(self, criteria: FilterCriteria = None, search_text: str = ''):
		self._criteria = criteria or FilterCriteria()  # active filter selections
		self._search_text = search_text  # free-text title search
		self._listeners: List[Listener] = []  # change observers

	@property
	def criteria(self) -> FilterCriteria:
		return self._criteria

	@property
	def search_text(self) -> str:
		return self._search_text

	def set_search_text(self, text: str):
		"""Replace the search text (None clears it)."""
		text = text or ''
		if text == self._search_text:
			return
		self._search_text = text
		self._notify()

	def set_criteria(self, criteria: FilterCriteria):
		"""Replace the whole criteria value."""
		if criteria == self._criteria:
			return
		self._criteria = criteria
		self._notify()

	def update_criteria(self, **changes):
		"""Replace selected criteria fields, e.g. update_criteria(min_rating=3.5)."""
		for key in ('genres', 'languages', 'censor_ratings'):
			if key in changes:
				changes[key] = frozenset(changes[key])  # accept any iterable of tags
		self.set_criteria(replace(self._criteria, **changes))

	def toggle_genre(self, genre: str):
		self.update_criteria(genres=self._criteria.genres ^ {genre})

	def toggle_language(self, language: str):
		self.update_criteria(languages=self._criteria.languages ^ {language})

	def toggle_censor_rating(self, censor_rating: str):
		self.update_criteria(censor_ratings=self._criteria.censor_ratings ^ {censor_rating})

	def reset(self):
		"""Clear all filters and the search text."""
		logger.debug("[Filters] Resetting filters and search text")
		changed = self._criteria != FilterCriteria() or self._search_text != ''
		self._criteria = FilterCriteria()
		self._search_text = ''
		if changed:
			self._notify()

	def apply(self, snapshot: Sequence[CatalogEntry]) -> List[CatalogEntry]:
		"""Run the filter engine on a snapshot with the current state."""
		return filter_catalog(snapshot, self._criteria, self._search_text)

	def subscribe(self, listener: Listener) -> Callable[[], None]:
		"""Register a change listener; returns a function that removes it."""
		self._listeners.append(listener)

		def unsubscribe():
			if listener in self._listeners:
				self._listeners.remove(listener)

		return unsubscribe

	def _notify(self):
		logger.debug(f"[Filters] State changed | search='{self._search_text}' | criteria={self._criteria}")
		for listener in list(self._listeners):  # copy: listeners may unsubscribe while running
			listener(self)
