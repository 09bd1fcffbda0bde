import abc
import typing

from ..models.binary import BinaryIdentifier
from ..models.entities import UserEntity
from ..models.record import CredentialRecord


class ChallengeStoreABC(abc.ABC):
	"""
	Keeps issued ceremony options for the lifetime of the ceremony, keyed by ceremony ID.

	The store must preserve the exact challenge bytes.
	Expired options are reported as absent.
	"""

	@abc.abstractmethod
	async def save(self, ceremony_id: str, options):
		pass

	@abc.abstractmethod
	async def load(self, ceremony_id: str):
		"""
		Return stored options or None
		"""
		pass

	@abc.abstractmethod
	async def clear(self, ceremony_id: str):
		pass

	async def consume(self, ceremony_id: str):
		"""
		Load and clear the stored options in one step.
		Implementations backed by shared storage should override this with an atomic operation.
		"""
		options = await self.load(ceremony_id)
		await self.clear(ceremony_id)
		return options

	async def delete_expired(self) -> int:
		return 0


class CredentialRepositoryABC(abc.ABC):
	"""
	Registered credentials, keyed by credential ID, which is unique across all users
	"""

	@abc.abstractmethod
	async def save(self, record: CredentialRecord):
		"""
		Insert or update the record
		"""
		pass

	@abc.abstractmethod
	async def create(self, record: CredentialRecord):
		"""
		Insert a new record, raise DuplicateCredentialError if its credential ID already exists
		"""
		pass

	@abc.abstractmethod
	async def compare_and_save(self, record: CredentialRecord, expected_signature_count: int) -> bool:
		"""
		Update the record only if the stored signature count still equals `expected_signature_count`.
		Return False when it does not.
		"""
		pass

	@abc.abstractmethod
	async def delete(self, credential_id: BinaryIdentifier):
		"""
		Delete the record, raise UnknownCredentialError if it does not exist
		"""
		pass

	@abc.abstractmethod
	async def find_by_credential_id(self, credential_id: BinaryIdentifier) -> typing.Optional[CredentialRecord]:
		pass

	@abc.abstractmethod
	async def find_by_user_id(self, user_id: BinaryIdentifier) -> typing.List[CredentialRecord]:
		pass


class UserEntityRepositoryABC(abc.ABC):
	"""
	WebAuthn user entities. Their IDs are random, stable per user, and independent of the username.
	"""

	async def initialize(self):
		pass

	@abc.abstractmethod
	async def find_by_id(self, user_id: BinaryIdentifier) -> typing.Optional[UserEntity]:
		pass

	@abc.abstractmethod
	async def create(self, user: UserEntity):
		"""
		Atomically insert a new user entity.
		Raises DuplicateUserError if the username is already taken.
		"""
		pass

	@abc.abstractmethod
	async def find_by_username(self, username: str) -> typing.Optional[UserEntity]:
		pass

	@abc.abstractmethod
	async def save(self, user: UserEntity):
		pass

	@abc.abstractmethod
	async def delete(self, user_id: BinaryIdentifier):
		pass
