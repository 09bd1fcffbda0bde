import enum

from ..exceptions import DecodeError


class CredentialAlgorithm(enum.IntEnum):
	"""
	COSE algorithm identifiers accepted for WebAuthn credentials

	https://www.iana.org/assignments/cose/cose.xhtml#algorithms
	"""
	ES256 = -7
	EdDSA = -8
	ES384 = -35
	ES512 = -36
	PS256 = -37
	PS384 = -38
	PS512 = -39
	RS256 = -257
	RS384 = -258
	RS512 = -259
	RS1 = -65535

	@classmethod
	def from_code(cls, code) -> "CredentialAlgorithm":
		# bool is an int subclass, but never a valid algorithm code
		if isinstance(code, bool) or not isinstance(code, int):
			raise DecodeError("COSE algorithm identifier must be an integer, got {!r}".format(code))
		try:
			return cls(code)
		except ValueError:
			raise DecodeError("Unsupported COSE algorithm identifier {}".format(code))

	@classmethod
	def from_name(cls, name: str) -> "CredentialAlgorithm":
		try:
			return cls[name]
		except KeyError:
			raise DecodeError("Unsupported COSE algorithm name {!r}".format(name))


class PublicKeyCredentialType(enum.StrEnum):
	PUBLIC_KEY = "public-key"


class AuthenticatorTransport(enum.StrEnum):
	USB = "usb"
	NFC = "nfc"
	BLE = "ble"
	SMART_CARD = "smart-card"
	HYBRID = "hybrid"
	INTERNAL = "internal"


class AuthenticatorAttachment(enum.StrEnum):
	PLATFORM = "platform"
	CROSS_PLATFORM = "cross-platform"


class AttestationConveyancePreference(enum.StrEnum):
	NONE = "none"
	INDIRECT = "indirect"
	DIRECT = "direct"
	ENTERPRISE = "enterprise"


class UserVerificationRequirement(enum.StrEnum):
	REQUIRED = "required"
	PREFERRED = "preferred"
	DISCOURAGED = "discouraged"


class ResidentKeyRequirement(enum.StrEnum):
	DISCOURAGED = "discouraged"
	PREFERRED = "preferred"
	REQUIRED = "required"


class PublicKeyCredentialHint(enum.StrEnum):
	SECURITY_KEY = "security-key"
	CLIENT_DEVICE = "client-device"
	HYBRID = "hybrid"


class ClientDataType(enum.StrEnum):
	CREATE = "webauthn.create"
	GET = "webauthn.get"


class CounterRegressionPolicy(enum.StrEnum):
	# Reject the assertion with CounterRegressionError
	REJECT = "reject"
	# Log a warning, keep the stored counter and let the authentication pass
	FLAG = "flag"
