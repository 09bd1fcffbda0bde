import datetime
import logging
import typing
import uuid

import asab
import cbor2

from .utils import verify_client_data, verify_rp_id_hash, parse_attestation_object
from ..exceptions import (
	AttestationRejectedError,
	CeremonyRejectedError,
	ChallengeMismatchError,
	DecodeError,
	DuplicateCredentialError,
)
from ..models.binary import BinaryIdentifier
from ..models.const import ClientDataType, CredentialAlgorithm, UserVerificationRequirement
from ..models.credential import CredentialEnvelope
from ..models.entities import UserEntity
from ..models.extensions import CredentialPropertiesInput, ExtensionInputs
from ..models.options import CreationOptions, create_creation_options
from ..models.record import CredentialRecord

#

L = logging.getLogger(__name__)

#

# COSE_Key label of the algorithm parameter
COSE_KEY_ALG = 3
NIL_AAGUID = "00000000-0000-0000-0000-000000000000"


class RegistrationCeremony:
	"""
	Registration of a new credential: Issued -> Completed or Issued -> Rejected.

	The ceremony object holds no per-ceremony state. Issued options are stored
	by the caller (see ChallengeStoreABC) and handed back to `complete()` exactly once.

	https://www.w3.org/TR/webauthn-3/#sctn-registering-a-new-credential
	"""

	def __init__(self, relying_party, repository, verifier):
		self.RelyingParty = relying_party
		self.CredentialRepository = repository
		self.AttestationVerifier = verifier


	def begin(
		self,
		user_entity: UserEntity,
		existing_credentials: typing.Iterable[CredentialRecord] = (),
		*,
		extensions: typing.Optional[ExtensionInputs] = None,
		hints=(),
		insecure_fixed_challenge: typing.Optional[BinaryIdentifier] = None,
	) -> CreationOptions:
		"""
		Build registration options for the user.

		Credentials the user already has are excluded, so that the same authenticator
		cannot be registered twice.
		"""
		if extensions is None:
			extensions = ExtensionInputs([CredentialPropertiesInput()]) \
				if self.RelyingParty.CredentialProperties else ExtensionInputs()

		return create_creation_options(
			rp=self.RelyingParty.rp_entity(),
			user=user_entity,
			algorithms=self.RelyingParty.Algorithms,
			timeout=self.RelyingParty.Timeout,
			exclude_credentials=[record.descriptor() for record in existing_credentials],
			authenticator_selection=self.RelyingParty.authenticator_selection(),
			attestation=self.RelyingParty.Attestation,
			extensions=extensions,
			hints=hints,
			challenge_length=self.RelyingParty.ChallengeLength,
			insecure_fixed_challenge=insecure_fixed_challenge,
		)


	async def complete(
		self,
		stored_options: typing.Optional[CreationOptions],
		envelope: CredentialEnvelope,
		label: typing.Optional[str] = None,
	) -> CredentialRecord:
		"""
		Verify the attestation response and store the new credential record.

		`stored_options` must already be consumed from the challenge store;
		None (absent or expired options) is a challenge mismatch.
		"""
		try:
			return await self._complete(stored_options, envelope, label)
		except CeremonyRejectedError as e:
			L.warning("WebAuthn registration rejected.", struct_data={
				"wacid": envelope.Id,
				"error": e.__class__.__name__,
				"reason": str(e),
			})
			raise


	async def _complete(self, options, envelope, label):
		if options is None:
			raise ChallengeMismatchError("No registration options issued or options expired")
		if not envelope.is_attestation:
			raise DecodeError("Expected attestation response", field="response")
		response = envelope.Response

		verify_client_data(response.ClientDataJSON, ClientDataType.CREATE, options.Challenge, self.RelyingParty)

		attestation = parse_attestation_object(response.AttestationObject)
		auth_data = attestation.auth_data
		verify_rp_id_hash(auth_data.rp_id_hash, options.Rp.Id)

		credential_data = auth_data.attested_credential_data
		if credential_data is None:
			raise DecodeError("Attested credential data missing", field="response.attestationObject")
		if credential_data.credential_id != envelope.RawId.to_bytes():
			raise AttestationRejectedError("Attested credential ID does not match the credential ID")

		if not auth_data.flags.up:
			raise AttestationRejectedError("User presence flag not set")
		if options.user_verification == UserVerificationRequirement.REQUIRED and not auth_data.flags.uv:
			raise AttestationRejectedError("User verification required but not performed")
		if auth_data.flags.bs and not auth_data.flags.be:
			raise AttestationRejectedError("Backup state set on a credential that is not backup eligible")

		if await self.CredentialRepository.find_by_credential_id(envelope.RawId) is not None:
			raise DuplicateCredentialError(envelope.RawId)

		await self.AttestationVerifier.verify(options, envelope)

		public_key = BinaryIdentifier(credential_data.credential_public_key)
		algorithm = _get_algorithm(public_key, response.PublicKeyAlgorithm)
		if algorithm not in options.algorithms:
			raise AttestationRejectedError("Algorithm {} was not requested".format(algorithm.name))

		aaguid = str(uuid.UUID(bytes=credential_data.aaguid))
		now = datetime.datetime.now(datetime.timezone.utc)
		record = CredentialRecord(
			CredentialId=envelope.RawId,
			UserEntityId=options.User.Id,
			PublicKey=public_key,
			Algorithm=algorithm,
			SignatureCount=auth_data.sign_count,
			Transports=response.Transports,
			AttestationFormat=str(_enum_value(attestation.fmt)),
			AttestationObject=response.AttestationObject,
			AttestationClientDataJSON=response.ClientDataJSON,
			Aaguid=aaguid if aaguid != NIL_AAGUID else None,
			UvInitialized=bool(auth_data.flags.uv),
			BackupEligible=bool(auth_data.flags.be),
			BackupState=bool(auth_data.flags.bs),
			Label=label,
			Created=now,
			LastUsed=None,
		)

		# Atomic insert; the loser of a concurrent registration race gets DuplicateCredentialError
		await self.CredentialRepository.create(record)

		struct_data = {
			"wacid": record.CredentialId.to_base64(),
			"uid": record.UserEntityId.to_base64(),
			"alg": record.Algorithm.name,
			"fmt": record.AttestationFormat,
		}
		cred_props = envelope.ClientExtensionResults.get("credProps")
		if cred_props is not None and cred_props.ResidentKey is not None:
			struct_data["rk"] = cred_props.ResidentKey
		L.log(asab.LOG_NOTICE, "WebAuthn credential registered.", struct_data=struct_data)
		return record


def _get_algorithm(public_key: BinaryIdentifier, reported: typing.Optional[CredentialAlgorithm]) -> CredentialAlgorithm:
	"""
	Read the algorithm from the COSE key, fall back to the one reported by the client
	"""
	try:
		cose_key = cbor2.loads(public_key.to_bytes())
	except (cbor2.CBORDecodeError, ValueError, TypeError) as e:
		raise DecodeError("Malformed credential public key", field="response.attestationObject") from e

	if isinstance(cose_key, dict) and COSE_KEY_ALG in cose_key:
		try:
			return CredentialAlgorithm.from_code(cose_key[COSE_KEY_ALG])
		except DecodeError as e:
			raise AttestationRejectedError("Unsupported credential algorithm {!r}".format(cose_key[COSE_KEY_ALG])) from e

	if reported is None:
		raise AttestationRejectedError("Credential algorithm unknown")
	return reported


def _enum_value(value):
	return getattr(value, "value", value)
