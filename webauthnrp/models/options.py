import dataclasses
import datetime
import logging
import typing

from .binary import BinaryIdentifier, generate_challenge, MIN_CHALLENGE_LENGTH, DEFAULT_CHALLENGE_LENGTH
from .const import (
	AttestationConveyancePreference,
	CredentialAlgorithm,
	PublicKeyCredentialHint,
	UserVerificationRequirement,
)
from .entities import (
	AuthenticatorSelectionCriteria,
	CredentialDescriptor,
	CredentialParameters,
	RpEntity,
	UserEntity,
)
from .extensions import ExtensionInputs
from ..exceptions import InvalidOptionsError

#

L = logging.getLogger(__name__)

#


DEFAULT_TIMEOUT = datetime.timedelta(minutes=5)


def _validate_challenge(challenge):
	if not isinstance(challenge, BinaryIdentifier):
		raise InvalidOptionsError("Challenge is required.")
	if len(challenge) < MIN_CHALLENGE_LENGTH:
		raise InvalidOptionsError("Challenge must be at least {} bytes long.".format(MIN_CHALLENGE_LENGTH))


def _validate_timeout(timeout):
	if not isinstance(timeout, datetime.timedelta) or timeout <= datetime.timedelta(0):
		raise InvalidOptionsError("Timeout must be a positive duration.")


@dataclasses.dataclass(frozen=True)
class CreationOptions:
	"""
	Registration ceremony parameters

	https://www.w3.org/TR/webauthn-3/#dictdef-publickeycredentialcreationoptions
	"""
	Rp: RpEntity
	User: UserEntity
	Challenge: BinaryIdentifier
	PubKeyCredParams: typing.Tuple[CredentialParameters, ...]
	Timeout: datetime.timedelta = DEFAULT_TIMEOUT
	ExcludeCredentials: typing.Tuple[CredentialDescriptor, ...] = ()
	AuthenticatorSelection: typing.Optional[AuthenticatorSelectionCriteria] = None
	Attestation: AttestationConveyancePreference = AttestationConveyancePreference.NONE
	Extensions: ExtensionInputs = dataclasses.field(default_factory=ExtensionInputs)
	Hints: typing.Tuple[PublicKeyCredentialHint, ...] = ()

	def __post_init__(self):
		if not isinstance(self.Rp, RpEntity):
			raise InvalidOptionsError("Relying party is required.")
		if not isinstance(self.User, UserEntity):
			raise InvalidOptionsError("User is required.")
		_validate_challenge(self.Challenge)
		if not self.PubKeyCredParams:
			raise InvalidOptionsError("At least one public key credential algorithm is required.")
		_validate_timeout(self.Timeout)
		object.__setattr__(self, "PubKeyCredParams", tuple(self.PubKeyCredParams))
		object.__setattr__(self, "ExcludeCredentials", tuple(self.ExcludeCredentials))
		object.__setattr__(self, "Hints", tuple(self.Hints))


	@property
	def algorithms(self) -> typing.List[CredentialAlgorithm]:
		return [param.Algorithm for param in self.PubKeyCredParams]


	@property
	def user_verification(self) -> UserVerificationRequirement:
		if self.AuthenticatorSelection is None or self.AuthenticatorSelection.UserVerification is None:
			# WebAuthn default
			return UserVerificationRequirement.PREFERRED
		return self.AuthenticatorSelection.UserVerification


@dataclasses.dataclass(frozen=True)
class RequestOptions:
	"""
	Authentication ceremony parameters

	https://www.w3.org/TR/webauthn-3/#dictdef-publickeycredentialrequestoptions
	"""
	Challenge: BinaryIdentifier
	RpId: str
	Timeout: datetime.timedelta = DEFAULT_TIMEOUT
	# Empty for discoverable credential (username-less) flows
	AllowCredentials: typing.Tuple[CredentialDescriptor, ...] = ()
	UserVerification: UserVerificationRequirement = UserVerificationRequirement.PREFERRED
	Extensions: ExtensionInputs = dataclasses.field(default_factory=ExtensionInputs)
	Hints: typing.Tuple[PublicKeyCredentialHint, ...] = ()

	def __post_init__(self):
		_validate_challenge(self.Challenge)
		if not self.RpId:
			raise InvalidOptionsError("Relying party ID is required.")
		_validate_timeout(self.Timeout)
		object.__setattr__(self, "AllowCredentials", tuple(self.AllowCredentials))
		object.__setattr__(self, "Hints", tuple(self.Hints))


	@property
	def allowed_credential_ids(self) -> typing.Set[BinaryIdentifier]:
		return {descriptor.Id for descriptor in self.AllowCredentials}


def _issue_challenge(challenge_length, insecure_fixed_challenge):
	if insecure_fixed_challenge is None:
		if challenge_length < MIN_CHALLENGE_LENGTH:
			raise InvalidOptionsError("Challenge must be at least {} bytes long.".format(MIN_CHALLENGE_LENGTH))
		return generate_challenge(challenge_length)
	L.warning("Issuing WebAuthn options with a fixed challenge. This must never happen in production.")
	return insecure_fixed_challenge


def _to_credential_parameters(algorithms):
	params = []
	for alg in algorithms:
		if isinstance(alg, CredentialParameters):
			params.append(alg)
			continue
		try:
			algorithm = CredentialAlgorithm(alg)
		except ValueError:
			raise InvalidOptionsError("Unsupported algorithm {!r}.".format(alg))
		params.append(CredentialParameters(Algorithm=algorithm))
	return tuple(params)


def create_creation_options(
	*,
	rp: RpEntity,
	user: UserEntity,
	algorithms: typing.Iterable,
	timeout: datetime.timedelta = DEFAULT_TIMEOUT,
	exclude_credentials: typing.Iterable[CredentialDescriptor] = (),
	authenticator_selection: typing.Optional[AuthenticatorSelectionCriteria] = None,
	attestation: AttestationConveyancePreference = AttestationConveyancePreference.NONE,
	extensions: typing.Optional[ExtensionInputs] = None,
	hints: typing.Iterable[PublicKeyCredentialHint] = (),
	challenge_length: int = DEFAULT_CHALLENGE_LENGTH,
	insecure_fixed_challenge: typing.Optional[BinaryIdentifier] = None,
) -> CreationOptions:
	"""
	Build registration options with a freshly generated challenge.

	The algorithm preference order given by the caller is kept.
	`insecure_fixed_challenge` exists for test fixtures only.
	"""
	return CreationOptions(
		Rp=rp,
		User=user,
		Challenge=_issue_challenge(challenge_length, insecure_fixed_challenge),
		PubKeyCredParams=_to_credential_parameters(algorithms),
		Timeout=timeout,
		ExcludeCredentials=tuple(exclude_credentials),
		AuthenticatorSelection=authenticator_selection,
		Attestation=attestation,
		Extensions=extensions if extensions is not None else ExtensionInputs(),
		Hints=tuple(hints),
	)


def create_request_options(
	*,
	rp_id: str,
	timeout: datetime.timedelta = DEFAULT_TIMEOUT,
	allow_credentials: typing.Iterable[CredentialDescriptor] = (),
	user_verification: UserVerificationRequirement = UserVerificationRequirement.PREFERRED,
	extensions: typing.Optional[ExtensionInputs] = None,
	hints: typing.Iterable[PublicKeyCredentialHint] = (),
	challenge_length: int = DEFAULT_CHALLENGE_LENGTH,
	insecure_fixed_challenge: typing.Optional[BinaryIdentifier] = None,
) -> RequestOptions:
	"""
	Build authentication options with a freshly generated challenge.
	"""
	return RequestOptions(
		Challenge=_issue_challenge(challenge_length, insecure_fixed_challenge),
		RpId=rp_id,
		Timeout=timeout,
		AllowCredentials=tuple(allow_credentials),
		UserVerification=user_verification,
		Extensions=extensions if extensions is not None else ExtensionInputs(),
		Hints=tuple(hints),
	)
