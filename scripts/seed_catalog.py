"""
Seed the catalog from a JSONL file.

This script:
1) Loads seed movies from data/sample_movies.jsonl (or CINECRITIC_SEED_PATH)
2) Normalizes genre/language tags into the catalog vocabulary
3) Validates each movie like the admin form does
4) Creates the valid ones in the JSONL catalog store (CINECRITIC_DATA_PATH)

Usage:
    python -m scripts.seed_catalog [seed_file]

Titles already present in the catalog are skipped, so the script can be re-run.
"""

import sys  # optional seed path argument
import time  # measure step timings
from pathlib import Path  # filesystem-safe paths

from loguru import logger  # console logging

from cinecritic.admin import AdminService  # validated writes
from cinecritic.config import load_settings  # environment settings
from cinecritic.data_loader import DataLoader  # data ingestion
from cinecritic.errors import StoreError, ValidationError  # error taxonomy
from cinecritic.store import JsonlCatalogStore  # catalog persistence


def seed(seed_path: Path, store) -> int:
	"""Create every valid, not-yet-present movie from seed_path; returns how many were added."""
	loader = DataLoader()  # loader instance
	forms = loader.load_movies_from_jsonl(str(seed_path))  # read dataset
	logger.info(f"[OK] Loaded {len(forms)} seed movies")  # confirm count

	existing = {entry.title.casefold() for entry in store.list_entries()}  # titles already seeded
	admin = AdminService(store)
	added = 0
	for form in forms:
		if form.title.casefold() in existing:
			logger.info(f"[Seed] Skipping '{form.title}' (already in catalog)")
			continue
		try:
			admin.create(form)
		except ValidationError as e:
			logger.warning(f"[Seed] Skipping '{form.title or '<untitled>'}': {e.errors}")
			continue
		existing.add(form.title.casefold())
		added += 1
	return added


def main():
	# Headline banner for visibility in console
	logger.info("=" * 60)
	logger.info("Seed Movie Catalog")
	logger.info("=" * 60)

	settings = load_settings()
	seed_path = Path(sys.argv[1]) if len(sys.argv) > 1 else Path(settings.SEED_PATH)

	# 1) Open the catalog store
	logger.info(f"[1/2] Opening catalog at {settings.DATA_PATH}...")
	store = JsonlCatalogStore(settings.DATA_PATH)
	logger.info(f"[OK] Catalog has {len(store)} movies")

	# 2) Load, validate and insert
	logger.info(f"[2/2] Seeding from {seed_path}...")
	t0 = time.time()  # start timer
	try:
		added = seed(seed_path, store)
	except StoreError as e:
		logger.error(f"Seeding stopped: {e}")
		sys.exit(1)
	logger.info(f"[OK] Added {added} movies in {time.time() - t0:.2f}s; catalog now has {len(store)}")

	logger.info("=" * 60)


if __name__ == '__main__':
	main()  # invoke seeder
