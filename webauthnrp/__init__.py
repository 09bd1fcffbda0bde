import asab

asab.Config.add_defaults({
	"webauthn": {
		# RP ID must match the host's domain name (without scheme, port or subpath)
		# https://www.w3.org/TR/webauthn-3/#relying-party-identifier
		# If empty, it is derived from the first origin
		"relying_party_id": "",
		"relying_party_name": "WebAuthn RP",

		# Whitespace-separated list of origins the ceremonies may come from
		# If empty, it defaults to "https://<relying_party_id>"
		"origin": "",

		# Advisory client timeout, also used as the server-side challenge expiration
		"challenge_timeout": "5 m",
		"challenge_length": 32,

		# Possible values: none, indirect, direct, enterprise
		"attestation": "none",
		# Possible values: required, preferred, discouraged
		"user_verification": "preferred",
		"resident_key": "preferred",
		# Possible values: platform, cross-platform or empty
		"authenticator_attachment": "",

		# COSE algorithm identifiers in the order of preference
		"algorithms": "-7 -257",

		# What to do when the signature counter does not increase
		#   - reject: reject the authentication (possibly cloned authenticator)
		#   - flag: log a warning and let the authentication pass
		"counter_regression": "reject",

		"credential_properties": "yes",
	},
})

from .exceptions import (  # noqa: E402
	WebAuthnError,
	DecodeError,
	InvalidOptionsError,
	CeremonyRejectedError,
	ProtocolMismatchError,
	ChallengeMismatchError,
	OriginMismatchError,
	RpIdMismatchError,
	TypeMismatchError,
	ConflictError,
	DuplicateCredentialError,
	DuplicateUserError,
	CounterRegressionError,
	TrustError,
	AttestationRejectedError,
	AssertionRejectedError,
	NotFoundError,
	UnknownCredentialError,
	UserNotFoundError,
)
from .codec import CodecConfig, WebAuthnJsonCodec  # noqa: E402
from .relying_party import RelyingParty  # noqa: E402
from .ceremony import RegistrationCeremony, AuthenticationCeremony  # noqa: E402
from .service import WebAuthnService  # noqa: E402

__all__ = [
	"WebAuthnError",
	"DecodeError",
	"InvalidOptionsError",
	"CeremonyRejectedError",
	"ProtocolMismatchError",
	"ChallengeMismatchError",
	"OriginMismatchError",
	"RpIdMismatchError",
	"TypeMismatchError",
	"ConflictError",
	"DuplicateCredentialError",
	"DuplicateUserError",
	"CounterRegressionError",
	"TrustError",
	"AttestationRejectedError",
	"AssertionRejectedError",
	"NotFoundError",
	"UnknownCredentialError",
	"UserNotFoundError",
	"CodecConfig",
	"WebAuthnJsonCodec",
	"RelyingParty",
	"RegistrationCeremony",
	"AuthenticationCeremony",
	"WebAuthnService",
]
