"""
Data models for the CineCritic catalog.
Defines the core data structures used throughout the system.
"""

# Import dataclass to define simple "record-like" classes without boilerplate
from dataclasses import dataclass, field, replace  # auto-generates __init__, __repr__, etc.
# Timestamps are kept timezone-aware (UTC) everywhere
from datetime import datetime, timezone  # creation timestamps
# Import typing helpers for precise and self-documenting types
from typing import Any, Dict, FrozenSet, Iterable, Optional  # sets, optional values, raw dicts


# Controlled vocabularies shared by the admin form, the filter panel and the loader
GENRES = ('Action', 'Comedy', 'Drama', 'Horror', 'Sci-Fi', 'Crime', 'Thriller')
LANGUAGES = (
	'English', 'Spanish', 'Hindi', 'French', 'Japanese',
	'Telugu', 'Tamil', 'Malayalam', 'Kannada',
)
CENSOR_RATINGS = ('U', 'U/A', 'A')

# Write-side rating bounds (the filter range intentionally starts lower, at 0)
MIN_RATING = 1.0
MAX_RATING = 5.0

# Fields an admin edit may replace; id and created_at are owned by the store
EDITABLE_FIELDS = ('title', 'genres', 'languages', 'censor_rating', 'rating', 'poster_image', 'review_text')


@dataclass(frozen=True)
class CatalogEntry:
	"""
	One reviewed title as stored in the catalog.
	Instances are immutable so a published snapshot can never change under a reader.
	"""
	title: str  # display title
	genres: FrozenSet[str]  # tags from GENRES, never empty once persisted
	languages: FrozenSet[str]  # tags from LANGUAGES, never empty once persisted
	censor_rating: str  # one of CENSOR_RATINGS
	rating: float  # score in [1.0, 5.0]
	poster_image: str  # poster URL or data: URI
	review_text: str  # the review itself
	id: Optional[str] = None  # assigned by the store on creation
	created_at: Optional[datetime] = None  # assigned by the store on creation

	def to_dict(self) -> Dict[str, Any]:
		"""Serialize to the JSON Lines record layout."""
		return {
			'id': self.id,
			'title': self.title,
			'genres': sorted(self.genres),
			'languages': sorted(self.languages),
			'censor': self.censor_rating,
			'rating': self.rating,
			'poster': self.poster_image,
			'review': self.review_text,
			'created_at': self.created_at.isoformat() if self.created_at else None,
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'CatalogEntry':
		"""Build an entry from a JSON Lines record (inverse of to_dict)."""
		created_at = data.get('created_at')
		if isinstance(created_at, str):
			created_at = datetime.fromisoformat(created_at)
		if created_at is not None and created_at.tzinfo is None:
			created_at = created_at.replace(tzinfo=timezone.utc)  # naive timestamps are UTC
		return cls(
			id=data.get('id'),
			title=data.get('title', ''),
			genres=frozenset(data.get('genres') or ()),
			languages=frozenset(data.get('languages') or ()),
			censor_rating=data.get('censor', ''),
			rating=float(data.get('rating', 0.0)),
			poster_image=data.get('poster', ''),
			review_text=data.get('review', ''),
			created_at=created_at,
		)

	def with_fields(self, **fields) -> 'CatalogEntry':
		"""Return a copy with the given editable fields replaced."""
		return replace(self, **fields)


@dataclass(frozen=True)
class FilterCriteria:
	"""
	The active non-search filter selections.
	Empty tag sets mean "no restriction"; the rating range defaults to [0, 5].
	"""
	genres: FrozenSet[str] = frozenset()
	languages: FrozenSet[str] = frozenset()
	min_rating: float = 0.0
	max_rating: float = 5.0
	censor_ratings: FrozenSet[str] = frozenset()

	@classmethod
	def build(
		cls,
		genres: Iterable[str] = (),
		languages: Iterable[str] = (),
		min_rating: float = 0.0,
		max_rating: float = 5.0,
		censor_ratings: Iterable[str] = (),
	) -> 'FilterCriteria':
		"""Convenience constructor accepting any iterables of tags."""
		return cls(
			genres=frozenset(genres),
			languages=frozenset(languages),
			min_rating=float(min_rating),
			max_rating=float(max_rating),
			censor_ratings=frozenset(censor_ratings),
		)

	def is_default(self) -> bool:
		return self == FilterCriteria()


@dataclass
class MovieForm:
	"""
	Raw admin form input before validation.
	Mirrors the editable fields of CatalogEntry but tolerates missing values.
	"""
	title: str = ''
	genres: FrozenSet[str] = field(default_factory=frozenset)
	languages: FrozenSet[str] = field(default_factory=frozenset)
	censor_rating: str = 'U'
	rating: float = 0.0
	poster_image: str = ''
	review_text: str = ''

	@classmethod
	def from_entry(cls, entry: CatalogEntry) -> 'MovieForm':
		"""Prefill the form for the edit view."""
		return cls(
			title=entry.title,
			genres=frozenset(entry.genres),
			languages=frozenset(entry.languages),
			censor_rating=entry.censor_rating,
			rating=entry.rating,
			poster_image=entry.poster_image,
			review_text=entry.review_text,
		)

	def to_fields(self) -> Dict[str, Any]:
		"""Editable field values with whitespace trimmed, ready for the store."""
		return {
			'title': self.title.strip(),
			'genres': frozenset(self.genres),
			'languages': frozenset(self.languages),
			'censor_rating': self.censor_rating,
			'rating': round(float(self.rating), 1),
			'poster_image': self.poster_image.strip(),
			'review_text': self.review_text.strip(),
		}


@dataclass(frozen=True)
class Principal:
	"""An authenticated admin."""
	email: str
