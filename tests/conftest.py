"""
Shared fixtures for the CineCritic tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from cinecritic.models import CatalogEntry, MovieForm


BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_entry(title, genres=('Drama',), languages=('English',), censor='U', rating=3.0, minutes=0, entry_id=None):
	"""Build a persisted-looking entry; later `minutes` means newer."""
	return CatalogEntry(
		id=entry_id or title.lower().replace(' ', '-'),
		title=title,
		genres=frozenset(genres),
		languages=frozenset(languages),
		censor_rating=censor,
		rating=rating,
		poster_image=f"https://img.example.com/{title}.jpg",
		review_text=f"Review of {title}",
		created_at=BASE_TIME + timedelta(minutes=minutes),
	)


def make_form(**overrides):
	"""A valid admin form; override fields to break it."""
	values = dict(
		title="Nova",
		genres=frozenset({'Sci-Fi'}),
		languages=frozenset({'English'}),
		censor_rating='U',
		rating=4.2,
		poster_image="https://img.example.com/nova.jpg",
		review_text="Slow, patient and worth it.",
	)
	values.update(overrides)
	return MovieForm(**values)


class StepClock:
	"""Deterministic clock advancing one second per call."""

	def __init__(self, start=BASE_TIME):
		self.now = start

	def __call__(self):
		self.now = self.now + timedelta(seconds=1)
		return self.now


@pytest.fixture
def nova_and_bloodline():
	"""Snapshot from the listing scenario, newest first."""
	return (
		make_entry("Nova", genres=('Sci-Fi',), censor='U', rating=4.2, minutes=2),
		make_entry("Bloodline", genres=('Horror',), censor='A', rating=2.0, minutes=1),
	)


@pytest.fixture
def catalog():
	"""A mixed snapshot, newest first."""
	return (
		make_entry("Kaadu", genres=('Action', 'Thriller'), languages=('Kannada', 'Tamil'), censor='U/A', rating=4.6, minutes=5),
		make_entry("The Long Laugh", genres=('Comedy',), languages=('Spanish',), censor='U', rating=3.1, minutes=4),
		make_entry("Monsoon Heist", genres=('Crime', 'Thriller'), languages=('Hindi', 'English'), censor='U/A', rating=3.8, minutes=3),
		make_entry("Nova", genres=('Sci-Fi', 'Drama'), censor='U', rating=5.0, minutes=2),
		make_entry("Bloodline", genres=('Horror',), censor='A', rating=1.0, minutes=1),
	)
