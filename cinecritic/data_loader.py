"""
Data loading and preprocessing module.
Loads seed movies from JSONL and normalizes genre/language tags into the catalog vocabulary.
"""

# Standard libs for JSON parsing, typing, and paths
import json  # read JSON lines
from typing import Dict, List, Optional  # type hints
from pathlib import Path  # filesystem-safe paths

# Fuzzy matching to absorb small typos in hand-written seed files
from rapidfuzz import fuzz, process  # fuzzy matching utilities

# Form model used by the admin write path
from .models import CENSOR_RATINGS, GENRES, LANGUAGES, CatalogEntry, MovieForm  # vocabularies and records

# Console logging
from loguru import logger  # console logger


class DataLoader:
	"""
	Handles loading and preprocessing of seed movie data.
	"""

	# Genre synonym mapping: common phrasings → catalog genre tag
	GENRE_SYNONYMS = {
		'sci-fi': 'Sci-Fi',  # canonical spelling
		'sci fi': 'Sci-Fi',  # map spaced form
		'scifi': 'Sci-Fi',  # common variant
		'sci-fy': 'Sci-Fi',  # typo variant
		'science fiction': 'Sci-Fi',  # long form
		'science-fiction': 'Sci-Fi',  # long form with dash
		'action': 'Action',
		'comedy': 'Comedy',
		'funny': 'Comedy',
		'drama': 'Drama',
		'horror': 'Horror',
		'crime': 'Crime',
		'thriller': 'Thriller',
		'suspense': 'Thriller',
	}

	# Language synonyms: ISO codes and native names → catalog language tag
	LANGUAGE_SYNONYMS = {
		'en': 'English',
		'es': 'Spanish',
		'espanol': 'Spanish',
		'español': 'Spanish',
		'hi': 'Hindi',
		'fr': 'French',
		'francais': 'French',
		'français': 'French',
		'ja': 'Japanese',
		'te': 'Telugu',
		'ta': 'Tamil',
		'ml': 'Malayalam',
		'kn': 'Kannada',
	}

	FUZZY_THRESHOLD = 88  # minimum rapidfuzz ratio to accept a fuzzy tag match

	def __init__(self):
		"""Initialize the loader and precompute lowercase vocabularies for lookups."""
		self.genre_synonyms = self.GENRE_SYNONYMS  # store mapping for reuse
		self.language_synonyms = self.LANGUAGE_SYNONYMS  # store mapping for reuse
		self._genre_lookup = {g.lower(): g for g in GENRES}  # lowercase -> canonical
		self._language_lookup = {lang.lower(): lang for lang in LANGUAGES}  # lowercase -> canonical

	def load_movies_from_jsonl(self, filepath: str) -> List[MovieForm]:
		"""
		Load seed movies from a JSON Lines file where each line is one JSON object.
		Returns MovieForm objects; validation happens when they are submitted.
		"""
		forms = []  # accumulator for parsed forms
		filepath = Path(filepath)  # normalize path

		# Validate the file presence early to give clear error messages
		if not filepath.exists():
			raise FileNotFoundError(f"Movie data file not found: {filepath}")

		logger.info(f"[DataLoader] Loading movies from {filepath}...")  # log action

		# Read line-by-line to keep memory flat on large files
		with open(filepath, 'r', encoding='utf-8') as f:
			for line_num, line in enumerate(f, 1):  # keep track of line number for diagnostics
				if not line.strip():  # tolerate blank lines
					continue
				try:
					data = json.loads(line.strip())  # parse JSON object per line
					forms.append(self._parse_movie_data(data))  # convert dict -> MovieForm
				except json.JSONDecodeError as e:
					logger.warning(f"[DataLoader] Skipping invalid JSON at line {line_num}: {e}")  # malformed line
					continue
				except (TypeError, ValueError, AttributeError) as e:
					logger.warning(f"[DataLoader] Error parsing movie at line {line_num}: {e}")  # bad field types
					continue

		logger.info(f"[DataLoader] Successfully loaded {len(forms)} movies.")  # summary
		return forms

	def _parse_movie_data(self, data: Dict) -> MovieForm:
		"""
		Convert a raw dictionary (from file) into a MovieForm.
		Accepts both the catalog field names and the short export names (censor, poster, review).
		"""
		genres = self._parse_comma_separated(data.get('genres', []))  # list of genres
		languages = self._parse_comma_separated(data.get('languages', []))  # list of languages

		# Tags that cannot be mapped are kept verbatim so validation reports them
		normalized_genres = [self.normalize_genre(g) or g for g in genres]
		normalized_languages = [self.normalize_language(lang) or lang for lang in languages]

		censor = str(data.get('censor') or data.get('censor_rating') or 'U').strip().upper()  # U, U/A, A
		if censor == 'UA':
			censor = 'U/A'  # common spelling without the slash

		rating = float(data['rating']) if data.get('rating') not in (None, '') else 0.0  # float rating

		return MovieForm(
			title=(data.get('title') or '').strip(),  # display title keeps its casing
			genres=frozenset(normalized_genres),
			languages=frozenset(normalized_languages),
			censor_rating=censor,
			rating=rating,
			poster_image=(data.get('poster') or data.get('poster_url') or data.get('posterUrl') or '').strip(),
			review_text=(data.get('review') or data.get('review_text') or '').strip(),
		)

	def _parse_comma_separated(self, value) -> List[str]:
		"""
		Normalize a value that may be None, a list, or a comma-separated string
		into a list of clean strings.
		"""
		if value is None:  # missing field
			return []
		if isinstance(value, list):  # already a list
			return [str(item).strip() for item in value if item]
		if isinstance(value, str):  # comma-separated string
			return [item.strip() for item in value.split(',') if item.strip()]
		return []  # any other type becomes empty

	def normalize_genre(self, genre: str) -> Optional[str]:
		"""Map a raw genre to its catalog tag, or None when nothing matches."""
		return self._normalize_tag(genre, self.genre_synonyms, self._genre_lookup)

	def normalize_language(self, language: str) -> Optional[str]:
		"""Map a raw language to its catalog tag, or None when nothing matches."""
		return self._normalize_tag(language, self.language_synonyms, self._language_lookup)

	def _normalize_tag(self, raw: str, synonyms: Dict[str, str], lookup: Dict[str, str]) -> Optional[str]:
		if not raw or not raw.strip():
			return None
		key = raw.strip().lower()

		# Exact vocabulary or synonym hit
		if key in lookup:
			return lookup[key]
		if key in synonyms:
			return synonyms[key]

		# Fuzzy fallback over vocabulary and synonym keys (e.g. "thriler" -> "Thriller")
		candidates = list(lookup) + list(synonyms)
		match = process.extractOne(key, candidates, scorer=fuzz.ratio)
		if match and match[1] >= self.FUZZY_THRESHOLD:
			resolved = lookup.get(match[0]) or synonyms[match[0]]
			logger.debug(f"[DataLoader] Fuzzy tag match: '{raw}' -> '{resolved}' (score={match[1]:.0f})")
			return resolved

		logger.debug(f"[DataLoader] No tag match for '{raw}'")
		return None

	def get_all_genres(self, entries: List[CatalogEntry]) -> List[str]:
		"""Return a sorted list of all genres used in the catalog."""
		genres = set()  # unique genres
		for entry in entries:
			genres.update(entry.genres)
		return sorted(genres)

	def get_all_languages(self, entries: List[CatalogEntry]) -> List[str]:
		"""Return a sorted list of all languages used in the catalog."""
		languages = set()  # unique languages
		for entry in entries:
			languages.update(entry.languages)
		return sorted(languages)

	def get_censor_breakdown(self, entries: List[CatalogEntry]) -> Dict[str, int]:
		"""Count entries per censor rating, in vocabulary order."""
		counts = {c: 0 for c in CENSOR_RATINGS}
		for entry in entries:
			if entry.censor_rating in counts:
				counts[entry.censor_rating] += 1
		return counts
