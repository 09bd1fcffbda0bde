import asab.exceptions


class WebAuthnError(Exception):
	"""
	Generic WebAuthn relying party error
	"""
	pass


class DecodeError(WebAuthnError, ValueError):
	"""
	Malformed binary or JSON input received from the client
	"""
	def __init__(self, message, *args, field=None):
		self.Field = field
		if field is not None:
			message = "{}: {}".format(field, message)
		super().__init__(message, *args)


class InvalidOptionsError(WebAuthnError, asab.exceptions.ValidationError):
	"""
	Ceremony options are missing a required field or contain an invalid value
	"""
	def __init__(self, message, *args):
		super().__init__(message, *args)


class CeremonyRejectedError(WebAuthnError):
	"""
	The ceremony has been rejected and its challenge is spent.

	The exception message describes the failed check and is meant for logs.
	Clients should only ever receive `PublicMessage`.
	"""
	PublicMessage = "WebAuthn ceremony rejected."


class ProtocolMismatchError(CeremonyRejectedError):
	pass


class ChallengeMismatchError(ProtocolMismatchError):
	"""
	Challenge in client data does not match the issued one, or no challenge has been issued (or it has expired)
	"""
	def __init__(self, message="Challenge mismatch", *args):
		super().__init__(message, *args)


class OriginMismatchError(ProtocolMismatchError):
	def __init__(self, origin, *args):
		self.Origin = origin
		super().__init__("Origin {!r} is not allowed".format(origin), *args)


class RpIdMismatchError(ProtocolMismatchError):
	def __init__(self, message="Relying party ID mismatch", *args):
		super().__init__(message, *args)


class TypeMismatchError(ProtocolMismatchError):
	def __init__(self, expected, actual, *args):
		self.Expected = expected
		self.Actual = actual
		super().__init__("Expected client data type {!r}, got {!r}".format(expected, actual), *args)


class ConflictError(CeremonyRejectedError):
	pass


class DuplicateCredentialError(ConflictError):
	"""
	Credential ID is already registered
	"""
	def __init__(self, credential_id, *args):
		self.CredentialId = credential_id
		super().__init__("Credential {} already registered".format(credential_id), *args)


class DuplicateUserError(ConflictError):
	"""
	User entity with this username already exists
	"""
	def __init__(self, username, *args):
		self.Username = username
		super().__init__("User {!r} already exists".format(username), *args)


class CounterRegressionError(ConflictError):
	"""
	Signature counter did not increase. The authenticator may have been cloned.
	"""
	def __init__(self, credential_id, stored_count: int, reported_count: int, *args):
		self.CredentialId = credential_id
		self.StoredCount = stored_count
		self.ReportedCount = reported_count
		super().__init__(
			"Signature counter of credential {} did not increase (stored {}, reported {})".format(
				credential_id, stored_count, reported_count),
			*args
		)


class TrustError(CeremonyRejectedError):
	def __init__(self, reason, *args):
		self.Reason = reason
		super().__init__(reason, *args)


class AttestationRejectedError(TrustError):
	pass


class AssertionRejectedError(TrustError):
	pass


class NotFoundError(CeremonyRejectedError, KeyError):
	pass


class UnknownCredentialError(NotFoundError):
	def __init__(self, credential_id=None, *args):
		self.CredentialId = credential_id
		if credential_id is None:
			message = "Credential not found"
		else:
			message = "Credential {} not found".format(credential_id)
		super().__init__(message, *args)


class UserNotFoundError(NotFoundError):
	def __init__(self, user, *args):
		self.User = user
		super().__init__("User {!r} not found".format(user), *args)
