import logging
import typing

import webauthn
import webauthn.helpers.cose
import webauthn.helpers.exceptions

from .abc import AttestationVerifierABC, AssertionVerifierABC
from ..ceremony.utils import effective_rp_id
from ..codec import WebAuthnJsonCodec
from ..exceptions import AttestationRejectedError, AssertionRejectedError
from ..models.const import UserVerificationRequirement

#

L = logging.getLogger(__name__)

#


def _to_cose_algorithms(algorithms) -> typing.List[webauthn.helpers.cose.COSEAlgorithmIdentifier]:
	result = []
	for algorithm in algorithms:
		try:
			result.append(webauthn.helpers.cose.COSEAlgorithmIdentifier(int(algorithm)))
		except ValueError:
			L.debug("Algorithm {} is not supported by py_webauthn, skipping.".format(algorithm.name))
	return result


class PyWebAuthnAttestationVerifier(AttestationVerifierABC):
	"""
	Attestation verification backed by py_webauthn (https://github.com/duo-labs/py_webauthn)
	"""

	def __init__(self, relying_party, codec: WebAuthnJsonCodec = None, pem_root_certs_bytes_by_fmt: dict = None):
		self.RelyingParty = relying_party
		self.Codec = codec or WebAuthnJsonCodec()
		# Extra trusted root certificates for attestation formats, e.g. enterprise attestation
		self.PemRootCertsBytesByFmt = pem_root_certs_bytes_by_fmt


	async def verify(self, options, envelope):
		try:
			webauthn.verify_registration_response(
				credential=self.Codec.credential_to_json(envelope),
				expected_challenge=options.Challenge.to_bytes(),
				expected_rp_id=options.Rp.Id,
				expected_origin=sorted(self.RelyingParty.Origins),
				require_user_verification=options.user_verification == UserVerificationRequirement.REQUIRED,
				supported_pub_key_algs=_to_cose_algorithms(options.algorithms),
				pem_root_certs_bytes_by_fmt=self.PemRootCertsBytesByFmt,
			)
		except webauthn.helpers.exceptions.WebAuthnException as e:
			raise AttestationRejectedError("Attestation verification failed: {}".format(e)) from e


class PyWebAuthnAssertionVerifier(AssertionVerifierABC):
	"""
	Assertion signature verification backed by py_webauthn.

	Signature counter is NOT checked here, it is the authentication ceremony's job.
	"""

	def __init__(self, relying_party, codec: WebAuthnJsonCodec = None):
		self.RelyingParty = relying_party
		self.Codec = codec or WebAuthnJsonCodec()


	async def verify(self, options, envelope, record):
		try:
			webauthn.verify_authentication_response(
				credential=self.Codec.credential_to_json(envelope),
				expected_challenge=options.Challenge.to_bytes(),
				expected_rp_id=effective_rp_id(options.RpId, options, envelope),
				expected_origin=sorted(self.RelyingParty.Origins),
				credential_public_key=record.PublicKey.to_bytes(),
				# Zero disables the library's own counter check
				credential_current_sign_count=0,
				require_user_verification=options.UserVerification == UserVerificationRequirement.REQUIRED,
			)
		except webauthn.helpers.exceptions.WebAuthnException as e:
			raise AssertionRejectedError("Assertion verification failed: {}".format(e)) from e
