from __future__ import annotations


class GatewayError(Exception):
	"""Base class for failures talking to the AI providers."""

	status_code = 500


class MissingCredential(GatewayError):
	status_code = 400


class MissingInput(GatewayError):
	status_code = 400


class ProviderError(GatewayError):
	status_code = 500


class MalformedProviderResponse(GatewayError):
	status_code = 500


class StoreError(Exception):
	status_code = 409


class DuplicateSession(StoreError):
	pass


class ProgressionError(Exception):
	"""Base class for rejected practice-flow actions."""

	status_code = 409


class SessionNotFound(ProgressionError):
	status_code = 404


class InvalidTransition(ProgressionError):
	pass


class PreparationInProgress(ProgressionError):
	pass


class SessionEnded(ProgressionError):
	pass
