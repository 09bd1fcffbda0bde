import asyncio
import datetime
import logging
import typing

from .abc import ChallengeStoreABC, CredentialRepositoryABC, UserEntityRepositoryABC
from ..exceptions import DuplicateCredentialError, DuplicateUserError, UnknownCredentialError, UserNotFoundError
from ..models.binary import BinaryIdentifier
from ..models.entities import UserEntity
from ..models.options import DEFAULT_TIMEOUT
from ..models.record import CredentialRecord

#

L = logging.getLogger(__name__)

#


def _utcnow():
	return datetime.datetime.now(datetime.timezone.utc)


class InMemoryChallengeStore(ChallengeStoreABC):
	"""
	Process-local challenge store with expiration.
	Suitable for tests and single-process deployments.
	"""

	def __init__(self, expiration: datetime.timedelta = DEFAULT_TIMEOUT):
		self.Expiration = expiration
		self.Options = {}


	async def save(self, ceremony_id, options):
		self.Options[ceremony_id] = (options, _utcnow() + self.Expiration)


	async def load(self, ceremony_id):
		entry = self.Options.get(ceremony_id)
		if entry is None:
			return None
		options, expires = entry
		if expires < _utcnow():
			return None
		return options


	async def clear(self, ceremony_id):
		self.Options.pop(ceremony_id, None)


	async def consume(self, ceremony_id):
		# Pop is atomic within the event loop
		entry = self.Options.pop(ceremony_id, None)
		if entry is None:
			return None
		options, expires = entry
		if expires < _utcnow():
			return None
		return options


	async def delete_expired(self) -> int:
		now = _utcnow()
		expired = [ceremony_id for ceremony_id, (_, expires) in self.Options.items() if expires < now]
		for ceremony_id in expired:
			del self.Options[ceremony_id]
		return len(expired)


class InMemoryCredentialRepository(CredentialRepositoryABC):

	def __init__(self):
		self.Records: typing.Dict[BinaryIdentifier, CredentialRecord] = {}
		self.Lock = asyncio.Lock()


	async def save(self, record):
		async with self.Lock:
			self.Records[record.CredentialId] = record


	async def create(self, record):
		async with self.Lock:
			if record.CredentialId in self.Records:
				raise DuplicateCredentialError(record.CredentialId)
			self.Records[record.CredentialId] = record


	async def compare_and_save(self, record, expected_signature_count):
		async with self.Lock:
			stored = self.Records.get(record.CredentialId)
			if stored is None:
				raise UnknownCredentialError(record.CredentialId)
			if stored.SignatureCount != expected_signature_count:
				return False
			self.Records[record.CredentialId] = record
			return True


	async def delete(self, credential_id):
		async with self.Lock:
			try:
				del self.Records[credential_id]
			except KeyError:
				raise UnknownCredentialError(credential_id)


	async def find_by_credential_id(self, credential_id):
		return self.Records.get(credential_id)


	async def find_by_user_id(self, user_id):
		return [
			record
			for record in self.Records.values()
			if record.UserEntityId == user_id
		]


class InMemoryUserEntityRepository(UserEntityRepositoryABC):

	def __init__(self):
		self.Users: typing.Dict[BinaryIdentifier, UserEntity] = {}
		self.Lock = asyncio.Lock()


	async def find_by_id(self, user_id):
		return self.Users.get(user_id)


	async def find_by_username(self, username):
		for user in self.Users.values():
			if user.Name == username:
				return user
		return None


	async def create(self, user):
		async with self.Lock:
			if user.Id in self.Users or await self.find_by_username(user.Name) is not None:
				raise DuplicateUserError(user.Name)
			self.Users[user.Id] = user


	async def save(self, user):
		async with self.Lock:
			self.Users[user.Id] = user


	async def delete(self, user_id):
		try:
			del self.Users[user_id]
		except KeyError:
			raise UserNotFoundError(user_id)
