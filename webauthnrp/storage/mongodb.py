import datetime
import logging

import asab
import asab.storage.exceptions
import pymongo

from .abc import ChallengeStoreABC, CredentialRepositoryABC, UserEntityRepositoryABC
from ..codec import WebAuthnJsonCodec
from ..events import EventTypes
from ..exceptions import DuplicateCredentialError, DuplicateUserError, UnknownCredentialError, UserNotFoundError
from ..models.binary import BinaryIdentifier
from ..models.entities import UserEntity
from ..models.options import CreationOptions, DEFAULT_TIMEOUT
from ..models.record import CredentialRecord

#

L = logging.getLogger(__name__)

#


class MongoDBChallengeStore(ChallengeStoreABC):
	"""
	Ceremony options stored in their WebAuthn JSON form, with expiration.

	Expired entries are reported as absent and removed on housekeeping.
	"""

	Collection = "wach"

	def __init__(self, storage_service, codec: WebAuthnJsonCodec = None, expiration: datetime.timedelta = DEFAULT_TIMEOUT):
		self.StorageService = storage_service
		self.Codec = codec or WebAuthnJsonCodec()
		self.Expiration = expiration


	async def save(self, ceremony_id, options):
		# Replace any options previously issued for this ceremony
		await self.clear(ceremony_id)

		upsertor = self.StorageService.upsertor(self.Collection, obj_id=ceremony_id, version=0)
		if isinstance(options, CreationOptions):
			upsertor.set("k", "create")
			upsertor.set("o", self.Codec.creation_options_to_json(options))
		else:
			upsertor.set("k", "get")
			upsertor.set("o", self.Codec.request_options_to_json(options))
		upsertor.set("exp", datetime.datetime.now(datetime.timezone.utc) + self.Expiration)
		await upsertor.execute(event_type=EventTypes.WEBAUTHN_CHALLENGE_CREATED)


	async def load(self, ceremony_id):
		try:
			challenge_obj = await self.StorageService.get(self.Collection, ceremony_id)
		except KeyError:
			return None
		return self._deserialize(challenge_obj)


	async def clear(self, ceremony_id):
		try:
			await self.StorageService.delete(self.Collection, ceremony_id)
		except KeyError:
			# There are no options associated with this ceremony
			pass


	async def consume(self, ceremony_id):
		collection = await self.StorageService.collection(self.Collection)
		challenge_obj = await collection.find_one_and_delete({"_id": ceremony_id})
		if challenge_obj is None:
			return None
		return self._deserialize(challenge_obj)


	async def delete_expired(self) -> int:
		collection = await self.StorageService.collection(self.Collection)
		query_filter = {"exp": {"$lt": datetime.datetime.now(datetime.timezone.utc)}}
		result = await collection.delete_many(query_filter)
		if result.deleted_count > 0:
			L.log(asab.LOG_NOTICE, "Expired WebAuthn challenges deleted.", struct_data={
				"count": result.deleted_count
			})
		return result.deleted_count


	def _deserialize(self, challenge_obj):
		expires = challenge_obj["exp"]
		if expires.tzinfo is None:
			# MongoDB returns naive UTC datetimes
			expires = expires.replace(tzinfo=datetime.timezone.utc)
		if expires < datetime.datetime.now(datetime.timezone.utc):
			return None
		if challenge_obj["k"] == "create":
			return self.Codec.parse_creation_options(challenge_obj["o"])
		else:
			return self.Codec.parse_request_options(challenge_obj["o"])


class MongoDBCredentialRepository(CredentialRepositoryABC):

	Collection = "wa"

	def __init__(self, storage_service):
		self.StorageService = storage_service


	async def save(self, record):
		upsertor = self.StorageService.upsertor(self.Collection, obj_id=record.CredentialId.to_bytes())
		self._set_fields(upsertor, record)
		await upsertor.execute(event_type=EventTypes.WEBAUTHN_CREDENTIAL_UPDATED)


	async def create(self, record):
		upsertor = self.StorageService.upsertor(self.Collection, obj_id=record.CredentialId.to_bytes(), version=0)
		self._set_fields(upsertor, record)
		try:
			await upsertor.execute(event_type=EventTypes.WEBAUTHN_CREDENTIAL_CREATED)
		except asab.storage.exceptions.DuplicateError as e:
			raise DuplicateCredentialError(record.CredentialId) from e


	async def compare_and_save(self, record, expected_signature_count):
		collection = await self.StorageService.collection(self.Collection)
		fields = record.serialize()
		del fields["_id"]
		result = await collection.update_one(
			{"_id": record.CredentialId.to_bytes(), "sc": expected_signature_count},
			{
				"$set": dict(fields, _m=datetime.datetime.now(datetime.timezone.utc)),
				"$inc": {"_v": 1},
			}
		)
		if result.matched_count == 0:
			if await self.find_by_credential_id(record.CredentialId) is None:
				raise UnknownCredentialError(record.CredentialId)
			return False
		return True


	async def delete(self, credential_id):
		try:
			await self.StorageService.delete(self.Collection, credential_id.to_bytes())
		except KeyError as e:
			raise UnknownCredentialError(credential_id) from e


	async def find_by_credential_id(self, credential_id):
		try:
			db_object = await self.StorageService.get(self.Collection, credential_id.to_bytes())
		except KeyError:
			return None
		return CredentialRecord.deserialize(db_object)


	async def find_by_user_id(self, user_id):
		collection = await self.StorageService.collection(self.Collection)
		cursor = collection.find({"uid": user_id.to_bytes()})
		cursor.sort("_c", 1)

		records = []
		async for db_object in cursor:
			records.append(CredentialRecord.deserialize(db_object))
		return records


	def _set_fields(self, upsertor, record):
		for key, value in record.serialize().items():
			if key == "_id" or value is None:
				continue
			upsertor.set(key, value)


class MongoDBUserEntityRepository(UserEntityRepositoryABC):

	Collection = "wau"

	def __init__(self, storage_service):
		self.StorageService = storage_service


	async def initialize(self):
		collection = await self.StorageService.collection(self.Collection)
		await collection.create_index([("username", pymongo.ASCENDING)], unique=True)


	async def find_by_id(self, user_id):
		try:
			db_object = await self.StorageService.get(self.Collection, user_id.to_bytes())
		except KeyError:
			return None
		return self._deserialize(db_object)


	async def find_by_username(self, username):
		collection = await self.StorageService.collection(self.Collection)
		db_object = await collection.find_one({"username": username})
		if db_object is None:
			return None
		return self._deserialize(db_object)


	async def create(self, user):
		# Uniqueness of the username is enforced by the index created in initialize()
		upsertor = self.StorageService.upsertor(self.Collection, obj_id=user.Id.to_bytes(), version=0)
		upsertor.set("username", user.Name)
		upsertor.set("dn", user.DisplayName)
		try:
			await upsertor.execute(event_type=EventTypes.WEBAUTHN_USER_ENTITY_CREATED)
		except asab.storage.exceptions.DuplicateError as e:
			raise DuplicateUserError(user.Name) from e


	async def save(self, user):
		existing = await self.find_by_id(user.Id)
		if existing is None:
			upsertor = self.StorageService.upsertor(self.Collection, obj_id=user.Id.to_bytes(), version=0)
			event_type = EventTypes.WEBAUTHN_USER_ENTITY_CREATED
		else:
			upsertor = self.StorageService.upsertor(self.Collection, obj_id=user.Id.to_bytes())
			event_type = EventTypes.WEBAUTHN_USER_ENTITY_UPDATED
		upsertor.set("username", user.Name)
		upsertor.set("dn", user.DisplayName)
		await upsertor.execute(event_type=event_type)


	async def delete(self, user_id):
		try:
			await self.StorageService.delete(self.Collection, user_id.to_bytes())
		except KeyError as e:
			raise UserNotFoundError(user_id) from e


	def _deserialize(self, db_object) -> UserEntity:
		return UserEntity(
			Id=BinaryIdentifier(db_object["_id"]),
			Name=db_object["username"],
			DisplayName=db_object.get("dn", ""),
		)
