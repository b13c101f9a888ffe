"""
Admin form validation.
Checks a MovieForm before anything is sent to the store and reports problems per field.
"""

from typing import Dict  # type hints

from .errors import ValidationError  # raised by ensure_valid
from .models import CENSOR_RATINGS, GENRES, LANGUAGES, MAX_RATING, MIN_RATING, MovieForm


MAX_POSTER_BYTES = 5 * 1024 * 1024  # inline poster uploads are capped at 5MB


def inline_image_size(poster: str) -> int:
	"""Approximate decoded size in bytes of a base64 `data:` URI (0 for plain URLs)."""
	if not poster.startswith('data:') or ',' not in poster:
		return 0
	header, payload = poster.split(',', 1)
	if ';base64' not in header:
		return len(payload)
	padding = payload.count('=', max(0, len(payload) - 2))
	return (len(payload) * 3) // 4 - padding


def validate_submission(form: MovieForm) -> Dict[str, str]:
	"""
	Return a dict of field -> error message; empty when the form can be submitted.
	Every field is checked so the admin sees all problems at once.
	"""
	errors: Dict[str, str] = {}

	if not (form.title or '').strip():
		errors['title'] = "Title is required"

	if not form.genres:
		errors['genres'] = "Select at least one genre"
	elif set(form.genres) - set(GENRES):
		errors['genres'] = f"Unknown genres: {', '.join(sorted(set(form.genres) - set(GENRES)))}"

	if not form.languages:
		errors['languages'] = "Select at least one language"
	elif set(form.languages) - set(LANGUAGES):
		errors['languages'] = f"Unknown languages: {', '.join(sorted(set(form.languages) - set(LANGUAGES)))}"

	if form.censor_rating not in CENSOR_RATINGS:
		errors['censor_rating'] = f"Censor rating must be one of {', '.join(CENSOR_RATINGS)}"

	try:
		rating = float(form.rating)
	except (TypeError, ValueError):
		rating = None
	if rating is None or not (MIN_RATING <= rating <= MAX_RATING):
		errors['rating'] = "Rating must be between 1 and 5"

	poster = (form.poster_image or '').strip()
	if not poster:
		errors['poster_image'] = "Poster is required"
	elif inline_image_size(poster) > MAX_POSTER_BYTES:
		errors['poster_image'] = "Image size should be less than 5MB"

	if not (form.review_text or '').strip():
		errors['review_text'] = "Review is required"

	return errors


def ensure_valid(form: MovieForm):
	"""Raise ValidationError carrying the field errors if the form is invalid."""
	errors = validate_submission(form)
	if errors:
		raise ValidationError(errors)
