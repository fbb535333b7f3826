"""HTTP client for the REST user store."""

from usersync.client.rest import UsersApiClient

__all__ = ["UsersApiClient"]
