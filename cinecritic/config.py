"""
CineCritic configuration, read from environment variables.

Settings are read when a Settings object is created, so tests can change the
environment and build a fresh one. Never hardcode secrets.
"""

import os  # environment access


class Settings:
	"""Application settings from environment variables."""

	def __init__(self):
		# Catalog storage
		self.DATA_PATH: str = os.environ.get("CINECRITIC_DATA_PATH", "data/catalog.jsonl")
		self.SEED_PATH: str = os.environ.get("CINECRITIC_SEED_PATH", "data/sample_movies.jsonl")

		# Admin accounts: comma-separated emails sharing one bcrypt password hash
		self.ADMIN_EMAIL: str = os.environ.get("CINECRITIC_ADMIN_EMAIL", "")
		self.ADMIN_PASSWORD_HASH: str = os.environ.get("CINECRITIC_ADMIN_PASSWORD_HASH", "")

		# Auth
		self.JWT_SECRET: str = os.environ.get("CINECRITIC_JWT_SECRET", "")
		self.JWT_ALGORITHM: str = "HS256"
		self.JWT_EXPIRY_HOURS: int = int(os.environ.get("CINECRITIC_JWT_EXPIRY_HOURS", "24"))
		self.SESSION_COOKIE: str = "session"

		# UI
		self.API_URL: str = os.environ.get("CINECRITIC_API_URL", "http://localhost:8000")

		# Application
		self.ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")

	def admin_accounts(self) -> dict:
		"""Map of admin email -> bcrypt hash built from ADMIN_EMAIL / ADMIN_PASSWORD_HASH."""
		if not self.ADMIN_EMAIL or not self.ADMIN_PASSWORD_HASH:
			return {}
		return {
			email.strip().lower(): self.ADMIN_PASSWORD_HASH
			for email in self.ADMIN_EMAIL.split(",")
			if email.strip()
		}

	def jwt_secret(self) -> str:
		"""The signing secret; development falls back to a fixed value, production must set one."""
		if self.JWT_SECRET:
			return self.JWT_SECRET
		if self.ENVIRONMENT == "development":
			return "cinecritic-dev-secret"
		raise RuntimeError("CINECRITIC_JWT_SECRET must be set outside development")


def load_settings() -> Settings:
	return Settings()
