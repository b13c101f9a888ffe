"""
Identity module.
Verifies admin credentials and tracks the signed-in principal for a UI session.
"""

from abc import ABC, abstractmethod  # provider contract
from datetime import datetime, timedelta, timezone  # token expiry
from typing import Callable, Dict, List, Optional  # type hints

import bcrypt  # password hashing
import jwt  # signed session tokens
from loguru import logger  # console logging

from .errors import AuthError  # generic credential failure
from .models import Principal  # authenticated admin


LOGIN_ROUTE = '/admin/login'  # where gated views send anonymous visitors

# Checked against when the account is unknown so both failure paths cost the same
_DUMMY_HASH = bcrypt.hashpw(b'not-a-real-password', bcrypt.gensalt(rounds=4))


class IdentityProvider(ABC):
	"""Verifies email/password pairs."""

	@abstractmethod
	def authenticate(self, email: str, password: str) -> Principal:
		"""Return the principal or raise AuthError (never says which part was wrong)."""


class LocalIdentityProvider(IdentityProvider):
	"""Admin accounts held in configuration as email -> bcrypt hash."""

	def __init__(self, accounts: Dict[str, str]):
		self._accounts = {email.strip().lower(): pw_hash for email, pw_hash in accounts.items()}
		logger.info(f"[Identity] Loaded {len(self._accounts)} admin accounts")

	@staticmethod
	def hash_password(password: str, rounds: int = 12) -> str:
		"""Produce a bcrypt hash suitable for CINECRITIC_ADMIN_PASSWORD_HASH."""
		return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds)).decode('utf-8')

	def authenticate(self, email: str, password: str) -> Principal:
		key = (email or '').strip().lower()
		stored = self._accounts.get(key)
		candidate = (password or '').encode('utf-8')
		try:
			ok = bcrypt.checkpw(candidate, (stored or '').encode('utf-8') if stored else _DUMMY_HASH)
		except ValueError:
			logger.warning(f"[Identity] Stored hash for {key} is malformed")
			ok = False
		if not stored or not ok:
			logger.info("[Identity] Rejected sign-in attempt")
			raise AuthError()
		logger.info(f"[Identity] Signed in {key}")
		return Principal(email=key)


SessionListener = Callable[[Optional[Principal]], None]


class SessionProvider:
	"""
	Current-session observable for one UI session.
	Injected into whichever view needs gating instead of living at module level.
	"""

	def __init__(self, identity: IdentityProvider):
		self.identity = identity  # credential checker
		self._principal: Optional[Principal] = None  # signed-in admin, if any
		self._listeners: List[SessionListener] = []  # session observers

	def current_session(self) -> Optional[Principal]:
		return self._principal

	def subscribe(self, listener: SessionListener) -> Callable[[], None]:
		"""Register a listener and call it right away with the current session."""
		self._listeners.append(listener)
		listener(self._principal)

		def unsubscribe():
			if listener in self._listeners:
				self._listeners.remove(listener)

		return unsubscribe

	def sign_in(self, email: str, password: str) -> bool:
		"""Try the credentials; returns False on failure instead of raising."""
		try:
			principal = self.identity.authenticate(email, password)
		except AuthError:
			return False
		self._set(principal)
		return True

	def sign_out(self) -> bool:
		self._set(None)
		return True

	end_session = sign_out

	def _set(self, principal: Optional[Principal]):
		if principal == self._principal:
			return
		self._principal = principal
		for listener in list(self._listeners):
			listener(principal)


def require_session(principal: Optional[Principal]) -> Optional[str]:
	"""Gate for admin views: None when allowed, otherwise the route to redirect to."""
	return None if principal is not None else LOGIN_ROUTE


def create_token(principal: Principal, secret: str, algorithm: str = 'HS256', expiry_hours: int = 24) -> str:
	"""Sign a session token for the HTTP API."""
	now = datetime.now(timezone.utc)
	payload = {
		'sub': principal.email,
		'iat': now,
		'exp': now + timedelta(hours=expiry_hours),
	}
	return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(token: str, secret: str, algorithm: str = 'HS256') -> Principal:
	"""Verify a session token; raises AuthError when it is invalid or expired."""
	try:
		payload = jwt.decode(token, secret, algorithms=[algorithm])
	except jwt.ExpiredSignatureError as e:
		raise AuthError("Session expired. Please sign in again.") from e
	except jwt.InvalidTokenError as e:
		raise AuthError("Invalid session token. Please sign in again.") from e
	email = payload.get('sub')
	if not email:
		raise AuthError("Invalid session token. Please sign in again.")
	return Principal(email=email)
