import datetime
import logging
import typing
import urllib.parse

import asab

from .models.binary import MIN_CHALLENGE_LENGTH, DEFAULT_CHALLENGE_LENGTH
from .models.const import (
	AttestationConveyancePreference,
	AuthenticatorAttachment,
	CounterRegressionPolicy,
	CredentialAlgorithm,
	ResidentKeyRequirement,
	UserVerificationRequirement,
)
from .models.entities import AuthenticatorSelectionCriteria, RpEntity
from .models.options import DEFAULT_TIMEOUT

#

L = logging.getLogger(__name__)

#


class RelyingParty:
	"""
	Relying party identity and ceremony policy.

	Usually built from the `[webauthn]` configuration section with `RelyingParty.from_config()`.
	"""

	def __init__(
		self,
		id: typing.Optional[str] = None,
		name: str = "WebAuthn RP",
		origins: typing.Optional[typing.Iterable[str]] = None,
		timeout: datetime.timedelta = DEFAULT_TIMEOUT,
		challenge_length: int = DEFAULT_CHALLENGE_LENGTH,
		attestation: AttestationConveyancePreference = AttestationConveyancePreference.NONE,
		user_verification: UserVerificationRequirement = UserVerificationRequirement.PREFERRED,
		resident_key: ResidentKeyRequirement = ResidentKeyRequirement.PREFERRED,
		authenticator_attachment: typing.Optional[AuthenticatorAttachment] = None,
		algorithms: typing.Iterable = (CredentialAlgorithm.ES256, CredentialAlgorithm.RS256),
		counter_regression: CounterRegressionPolicy = CounterRegressionPolicy.REJECT,
		credential_properties: bool = True,
	):
		origins = [origin.rstrip("/") for origin in (origins or []) if len(origin) > 0]

		if not id:
			if len(origins) == 0:
				raise ValueError("Either relying party ID or origin must be configured.")
			id = urllib.parse.urlparse(origins[0]).hostname
			if not id:
				raise ValueError("Cannot derive relying party ID from origin {!r}.".format(origins[0]))

		if len(origins) == 0:
			origins = ["https://{}".format(id)]

		self.Id = id
		self.Name = name
		self.Origins = frozenset(origins)
		self.Timeout = timeout
		if challenge_length < MIN_CHALLENGE_LENGTH:
			raise ValueError("Challenge length must be at least {} bytes.".format(MIN_CHALLENGE_LENGTH))
		self.ChallengeLength = challenge_length

		self.Attestation = AttestationConveyancePreference(attestation)
		self.UserVerification = UserVerificationRequirement(user_verification)
		self.ResidentKey = ResidentKeyRequirement(resident_key)
		self.AuthenticatorAttachment = AuthenticatorAttachment(authenticator_attachment) \
			if authenticator_attachment else None
		self.Algorithms = tuple(CredentialAlgorithm(alg) for alg in algorithms)
		if len(self.Algorithms) == 0:
			raise ValueError("At least one credential algorithm must be configured.")
		self.CounterRegressionPolicy = CounterRegressionPolicy(counter_regression)
		self.CredentialProperties = credential_properties


	@classmethod
	def from_config(cls, section: str = "webauthn") -> "RelyingParty":
		origins = asab.Config.get(section, "origin", fallback="").split()
		algorithms = []
		for code in asab.Config.get(section, "algorithms").split():
			try:
				algorithms.append(CredentialAlgorithm(int(code)))
			except ValueError:
				raise ValueError("Unsupported WebAuthn algorithm in configuration: {!r}".format(code))

		try:
			return cls(
				id=asab.Config.get(section, "relying_party_id", fallback=""),
				name=asab.Config.get(section, "relying_party_name"),
				origins=origins,
				timeout=datetime.timedelta(seconds=asab.Config.getseconds(section, "challenge_timeout")),
				challenge_length=asab.Config.getint(section, "challenge_length"),
				attestation=asab.Config.get(section, "attestation"),
				user_verification=asab.Config.get(section, "user_verification"),
				resident_key=asab.Config.get(section, "resident_key"),
				authenticator_attachment=asab.Config.get(section, "authenticator_attachment", fallback="") or None,
				algorithms=algorithms,
				counter_regression=asab.Config.get(section, "counter_regression"),
				credential_properties=asab.Config.getboolean(section, "credential_properties"),
			)
		except ValueError as e:
			raise ValueError("Invalid WebAuthn configuration in [{}]: {}".format(section, e)) from e


	def __repr__(self):
		return "<RelyingParty id={!r} origins={}>".format(self.Id, sorted(self.Origins))


	def rp_entity(self) -> RpEntity:
		return RpEntity(Id=self.Id, Name=self.Name)


	def authenticator_selection(self) -> AuthenticatorSelectionCriteria:
		return AuthenticatorSelectionCriteria(
			AuthenticatorAttachment=self.AuthenticatorAttachment,
			ResidentKey=self.ResidentKey,
			UserVerification=self.UserVerification,
		)


	def is_allowed_origin(self, origin: str) -> bool:
		return origin in self.Origins
