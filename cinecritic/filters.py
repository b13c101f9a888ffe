"""
Filter/search module.
Applies the title search and the filter panel selections to a catalog snapshot.
"""

from typing import List, Sequence  # type annotations for clarity

from .models import CatalogEntry, FilterCriteria  # core data classes


EMPTY_CATALOG_MESSAGE = "No movies found"  # the catalog itself has no entries
NO_MATCH_MESSAGE = "No movies match your filters"  # entries exist but none pass


def matches(entry: CatalogEntry, criteria: FilterCriteria, search_text: str = '') -> bool:
	"""
	Return True when the entry passes every active predicate (logical AND).
	Tag filters use intersection semantics: one shared tag is enough.
	"""
	# Title: case-insensitive substring; empty search text matches everything
	if search_text and search_text.casefold() not in entry.title.casefold():
		return False

	# Genres: at least one requested genre must be present on the entry
	if criteria.genres and not (entry.genres & criteria.genres):
		return False

	# Languages: same intersection rule as genres
	if criteria.languages and not (entry.languages & criteria.languages):
		return False

	# Rating: inclusive at both ends; min > max simply matches nothing
	if not (criteria.min_rating <= entry.rating <= criteria.max_rating):
		return False

	# Censor rating: membership in the selected set
	if criteria.censor_ratings and entry.censor_rating not in criteria.censor_ratings:
		return False

	return True


def filter_catalog(
	snapshot: Sequence[CatalogEntry],
	criteria: FilterCriteria,
	search_text: str = '',
) -> List[CatalogEntry]:
	"""
	Produce the entries to display, keeping the snapshot's order (newest first).
	Pure function of its inputs: the snapshot is never mutated or reordered.
	"""
	return [entry for entry in snapshot if matches(entry, criteria, search_text)]


def describe_empty_result(snapshot: Sequence[CatalogEntry], result: Sequence[CatalogEntry]) -> str:
	"""Pick the empty-state message for a listing, or '' when there is something to show."""
	if result:
		return ''
	return EMPTY_CATALOG_MESSAGE if not snapshot else NO_MATCH_MESSAGE
