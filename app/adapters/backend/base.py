from abc import ABC, abstractmethod

from app.schemas.auth import AuthUser, Profile


class AbstractProfileClient(ABC):
	"""Interface for clients that can read a user's profile row."""

	@abstractmethod
	async def fetch_profile(self, user_id: str) -> Profile | None:
		"""Look up the profile (role column) of ``user_id``.

		Args:
			user_id: Auth service user id.

		Returns:
			Profile | None: The row, or None when the backend returned nothing.

		Raises:
			BackendAccessDeniedError: If access rules refused the query.
			BackendUnavailableError: If the backend could not be reached.
		"""
		...


class AbstractSessionClient(AbstractProfileClient):
	"""Client bound to the caller's session credentials.

	Profile lookups through this client are subject to row-level security.
	"""

	@abstractmethod
	async def get_user(self) -> AuthUser | None:
		"""Resolve the user behind the session.

		Returns:
			AuthUser | None: The user, or None when there is no valid session.

		Raises:
			BackendUnavailableError: If the auth service could not be reached.
		"""
		...
