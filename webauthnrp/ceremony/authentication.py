import dataclasses
import datetime
import logging
import typing

import asab

from .utils import verify_client_data, verify_rp_id_hash, parse_authenticator_data, effective_rp_id
from ..exceptions import (
	AssertionRejectedError,
	CeremonyRejectedError,
	ChallengeMismatchError,
	CounterRegressionError,
	DecodeError,
	UnknownCredentialError,
)
from ..models.binary import BinaryIdentifier
from ..models.const import ClientDataType, CounterRegressionPolicy, UserVerificationRequirement
from ..models.credential import CredentialEnvelope
from ..models.extensions import ExtensionInputs
from ..models.options import RequestOptions, create_request_options
from ..models.record import CredentialRecord

#

L = logging.getLogger(__name__)

#


class AuthenticationCeremony:
	"""
	Authentication with a registered credential: Issued -> Completed or Issued -> Rejected.

	https://www.w3.org/TR/webauthn-3/#sctn-verifying-assertion
	"""

	def __init__(self, relying_party, repository, verifier):
		self.RelyingParty = relying_party
		self.CredentialRepository = repository
		self.AssertionVerifier = verifier


	def begin(
		self,
		allowed_credentials: typing.Optional[typing.Iterable[CredentialRecord]] = None,
		*,
		extensions: typing.Optional[ExtensionInputs] = None,
		hints=(),
		insecure_fixed_challenge: typing.Optional[BinaryIdentifier] = None,
	) -> RequestOptions:
		"""
		Build authentication options.

		Without `allowed_credentials`, the allow-list is empty and the client may offer
		any discoverable credential it holds for this RP.
		"""
		return create_request_options(
			rp_id=self.RelyingParty.Id,
			timeout=self.RelyingParty.Timeout,
			allow_credentials=[record.descriptor() for record in (allowed_credentials or ())],
			user_verification=self.RelyingParty.UserVerification,
			extensions=extensions,
			hints=hints,
			challenge_length=self.RelyingParty.ChallengeLength,
			insecure_fixed_challenge=insecure_fixed_challenge,
		)


	async def complete(self, stored_options: typing.Optional[RequestOptions], envelope: CredentialEnvelope) -> CredentialRecord:
		"""
		Verify the assertion and update the signature counter of the matched credential record.
		Return the updated record; its `UserEntityId` identifies the authenticated user.
		"""
		try:
			return await self._complete(stored_options, envelope)
		except CounterRegressionError as e:
			L.warning("WebAuthn signature counter regression, authenticator may be cloned.", struct_data={
				"wacid": envelope.Id,
				"stored": e.StoredCount,
				"reported": e.ReportedCount,
			})
			raise
		except CeremonyRejectedError as e:
			L.warning("WebAuthn authentication rejected.", struct_data={
				"wacid": envelope.Id,
				"error": e.__class__.__name__,
				"reason": str(e),
			})
			raise


	async def _complete(self, options, envelope):
		if options is None:
			raise ChallengeMismatchError("No authentication options issued or options expired")
		if not envelope.is_assertion:
			raise DecodeError("Expected assertion response", field="response")
		response = envelope.Response

		verify_client_data(response.ClientDataJSON, ClientDataType.GET, options.Challenge, self.RelyingParty)

		auth_data = parse_authenticator_data(response.AuthenticatorData)
		verify_rp_id_hash(auth_data.rp_id_hash, effective_rp_id(options.RpId, options, envelope))

		allowed_ids = options.allowed_credential_ids
		if len(allowed_ids) > 0 and envelope.RawId not in allowed_ids:
			raise UnknownCredentialError(envelope.RawId)

		record = await self.CredentialRepository.find_by_credential_id(envelope.RawId)
		if record is None:
			raise UnknownCredentialError(envelope.RawId)

		# Discoverable credential flow identifies the user by the user handle only
		if response.UserHandle is None:
			if len(allowed_ids) == 0:
				raise UnknownCredentialError(envelope.RawId)
		elif response.UserHandle != record.UserEntityId:
			raise UnknownCredentialError(envelope.RawId)

		if not auth_data.flags.up:
			raise AssertionRejectedError("User presence flag not set")
		if options.UserVerification == UserVerificationRequirement.REQUIRED and not auth_data.flags.uv:
			raise AssertionRejectedError("User verification required but not performed")
		if auth_data.flags.bs and not auth_data.flags.be:
			raise AssertionRejectedError("Backup state set on a credential that is not backup eligible")
		if auth_data.flags.be != record.BackupEligible:
			raise AssertionRejectedError("Backup eligibility of the credential has changed")

		await self.AssertionVerifier.verify(options, envelope, record)

		stored_count = record.SignatureCount
		reported_count = auth_data.sign_count
		# Zero means the authenticator does not implement the counter
		new_count = max(reported_count, stored_count)
		if reported_count > 0 and stored_count > 0 and reported_count <= stored_count:
			if self.RelyingParty.CounterRegressionPolicy == CounterRegressionPolicy.REJECT:
				raise CounterRegressionError(record.CredentialId, stored_count, reported_count)
			L.warning("WebAuthn signature counter did not increase, authentication allowed by policy.", struct_data={
				"wacid": record.CredentialId.to_base64(),
				"stored": stored_count,
				"reported": reported_count,
			})

		updated = dataclasses.replace(
			record,
			SignatureCount=new_count,
			BackupState=bool(auth_data.flags.bs),
			UvInitialized=record.UvInitialized or bool(auth_data.flags.uv),
			LastUsed=datetime.datetime.now(datetime.timezone.utc),
		)

		if not await self.CredentialRepository.compare_and_save(updated, expected_signature_count=stored_count):
			# Another authentication with the same credential has updated the counter meanwhile
			if self.RelyingParty.CounterRegressionPolicy == CounterRegressionPolicy.REJECT:
				raise CounterRegressionError(record.CredentialId, stored_count, reported_count)
			L.warning("WebAuthn signature counter changed concurrently, authentication allowed by policy.", struct_data={
				"wacid": record.CredentialId.to_base64(),
				"reported": reported_count,
			})
			updated = await self.CredentialRepository.find_by_credential_id(record.CredentialId)
			if updated is None:
				raise UnknownCredentialError(record.CredentialId)

		L.log(asab.LOG_NOTICE, "WebAuthn authentication successful.", struct_data={
			"wacid": updated.CredentialId.to_base64(),
			"uid": updated.UserEntityId.to_base64(),
			"sc": updated.SignatureCount,
		})
		return updated
