import abc

from ..models.credential import CredentialEnvelope
from ..models.options import CreationOptions, RequestOptions
from ..models.record import CredentialRecord


class AttestationVerifierABC(abc.ABC):
	"""
	Cryptographic verification of a registration response:
	attestation statement, its trust chain and the credential public key.

	The verifier has no side effects. It returns None on success and raises
	`AttestationRejectedError` with a reason otherwise.
	"""

	@abc.abstractmethod
	async def verify(self, options: CreationOptions, envelope: CredentialEnvelope) -> None:
		pass


class AssertionVerifierABC(abc.ABC):
	"""
	Verification of an authentication assertion signature against the stored credential public key.

	The verifier has no side effects. It returns None on success and raises
	`AssertionRejectedError` with a reason otherwise.
	"""

	@abc.abstractmethod
	async def verify(self, options: RequestOptions, envelope: CredentialEnvelope, record: CredentialRecord) -> None:
		pass
