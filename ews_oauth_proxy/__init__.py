"""Authenticating reverse proxy that swaps Basic credentials for an OAuth2 bearer token."""
