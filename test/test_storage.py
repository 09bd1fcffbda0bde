import datetime
import unittest
import unittest.mock

import asab.storage.exceptions

from webauthnrp import WebAuthnJsonCodec
from webauthnrp.exceptions import DuplicateCredentialError, DuplicateUserError, UnknownCredentialError, UserNotFoundError
from webauthnrp.models import (
	AuthenticatorTransport,
	BinaryIdentifier,
	CredentialAlgorithm,
	CredentialRecord,
	RpEntity,
	UserEntity,
	create_creation_options,
	create_request_options,
)
from webauthnrp.storage import (
	InMemoryChallengeStore,
	InMemoryCredentialRepository,
	InMemoryUserEntityRepository,
	MongoDBChallengeStore,
	MongoDBCredentialRepository,
	MongoDBUserEntityRepository,
)


def make_record(credential_id=b"cred-1", user_id=b"u1", sign_count=0, **kwargs):
	return CredentialRecord(
		CredentialId=BinaryIdentifier(credential_id),
		UserEntityId=BinaryIdentifier(user_id),
		PublicKey=BinaryIdentifier(b"\xa5\x01\x02"),
		Algorithm=CredentialAlgorithm.ES256,
		SignatureCount=sign_count,
		**kwargs
	)


class CredentialRecordTestCase(unittest.TestCase):

	def test_serialize(self):
		record = make_record(
			sign_count=4,
			Transports=[AuthenticatorTransport.USB, AuthenticatorTransport.NFC],
			AttestationFormat="packed",
			Aaguid="2fc0579f-8113-47ea-b116-bb5a8db9202a",
			BackupEligible=True,
			Label="YubiKey",
			Created=datetime.datetime(2024, 5, 1, tzinfo=datetime.timezone.utc),
		)
		db_object = record.serialize()
		self.assertEqual(db_object["_id"], b"cred-1")
		self.assertEqual(db_object["uid"], b"u1")
		self.assertEqual(db_object["alg"], -7)
		self.assertEqual(db_object["tr"], ["usb", "nfc"])
		self.assertEqual(CredentialRecord.deserialize(db_object), record)


	def test_negative_sign_count(self):
		with self.assertRaises(ValueError):
			make_record(sign_count=-1)


class InMemoryStorageTestCase(unittest.IsolatedAsyncioTestCase):

	async def test_challenge_store(self):
		store = InMemoryChallengeStore()
		options = create_request_options(rp_id="example.com")
		await store.save("c1", options)
		self.assertIs(await store.load("c1"), options)
		self.assertIs(await store.consume("c1"), options)
		self.assertIsNone(await store.consume("c1"))
		self.assertIsNone(await store.load("c1"))


	async def test_challenge_expiration(self):
		store = InMemoryChallengeStore(expiration=datetime.timedelta(seconds=-1))
		await store.save("c1", create_request_options(rp_id="example.com"))
		self.assertIsNone(await store.load("c1"))
		self.assertEqual(await store.delete_expired(), 1)
		self.assertEqual(await store.delete_expired(), 0)


	async def test_credential_repository(self):
		repository = InMemoryCredentialRepository()
		record = make_record()
		await repository.create(record)
		with self.assertRaises(DuplicateCredentialError):
			await repository.create(make_record(user_id=b"u2"))

		self.assertEqual(await repository.find_by_credential_id(BinaryIdentifier(b"cred-1")), record)
		self.assertIsNone(await repository.find_by_credential_id(BinaryIdentifier(b"cred-2")))
		self.assertEqual(await repository.find_by_user_id(BinaryIdentifier(b"u1")), [record])
		self.assertEqual(await repository.find_by_user_id(BinaryIdentifier(b"u2")), [])

		await repository.delete(record.CredentialId)
		with self.assertRaises(UnknownCredentialError):
			await repository.delete(record.CredentialId)


	async def test_compare_and_save(self):
		repository = InMemoryCredentialRepository()
		await repository.save(make_record(sign_count=5))
		self.assertTrue(await repository.compare_and_save(make_record(sign_count=6), expected_signature_count=5))
		self.assertFalse(await repository.compare_and_save(make_record(sign_count=7), expected_signature_count=5))
		stored = await repository.find_by_credential_id(BinaryIdentifier(b"cred-1"))
		self.assertEqual(stored.SignatureCount, 6)

		with self.assertRaises(UnknownCredentialError):
			await repository.compare_and_save(make_record(b"cred-2"), expected_signature_count=0)


	async def test_user_entity_repository(self):
		repository = InMemoryUserEntityRepository()
		user = UserEntity(Id=BinaryIdentifier(b"u1"), Name="alice", DisplayName="Alice")
		await repository.save(user)
		self.assertEqual(await repository.find_by_id(BinaryIdentifier(b"u1")), user)
		self.assertEqual(await repository.find_by_username("alice"), user)
		self.assertIsNone(await repository.find_by_username("bob"))
		await repository.delete(user.Id)
		with self.assertRaises(UserNotFoundError):
			await repository.delete(user.Id)


	async def test_create_user_entity(self):
		repository = InMemoryUserEntityRepository()
		user = UserEntity(Id=BinaryIdentifier(b"u1"), Name="alice", DisplayName="Alice")
		await repository.create(user)
		with self.assertRaises(DuplicateUserError):
			await repository.create(UserEntity(Id=BinaryIdentifier(b"u2"), Name="alice", DisplayName="Alice"))
		self.assertEqual(list(repository.Users.values()), [user])


class MongoDBStorageTestCase(unittest.IsolatedAsyncioTestCase):

	def setUp(self):
		self.StorageService = unittest.mock.MagicMock()
		self.StorageService.get = unittest.mock.AsyncMock()
		self.StorageService.delete = unittest.mock.AsyncMock()
		self.Collection = unittest.mock.MagicMock()
		self.Collection.find_one_and_delete = unittest.mock.AsyncMock()
		self.Collection.update_one = unittest.mock.AsyncMock()
		self.Collection.delete_many = unittest.mock.AsyncMock()
		self.StorageService.collection = unittest.mock.AsyncMock(return_value=self.Collection)
		self.Upsertor = unittest.mock.MagicMock()
		self.Upsertor.execute = unittest.mock.AsyncMock()
		self.StorageService.upsertor.return_value = self.Upsertor


	def _stored_fields(self):
		return {call.args[0]: call.args[1] for call in self.Upsertor.set.call_args_list}


	async def test_challenge_store_preserves_options(self):
		codec = WebAuthnJsonCodec()
		store = MongoDBChallengeStore(self.StorageService, codec)
		options = create_creation_options(
			rp=RpEntity(Id="example.com", Name="Example"),
			user=UserEntity(Id=BinaryIdentifier(b"u1"), Name="alice", DisplayName="Alice"),
			algorithms=[-7],
		)
		self.StorageService.delete.side_effect = KeyError("NOT-FOUND")
		await store.save("c1", options)
		self.StorageService.upsertor.assert_called_once_with("wach", obj_id="c1", version=0)
		fields = self._stored_fields()
		self.assertEqual(fields["k"], "create")
		self.assertEqual(fields["o"]["challenge"], options.Challenge.to_base64())

		self.Collection.find_one_and_delete.return_value = dict(fields, _id="c1")
		self.assertEqual(await store.consume("c1"), options)
		self.Collection.find_one_and_delete.assert_awaited_once_with({"_id": "c1"})

		self.Collection.find_one_and_delete.return_value = None
		self.assertIsNone(await store.consume("c1"))


	async def test_challenge_store_expiration(self):
		store = MongoDBChallengeStore(self.StorageService)
		options = create_request_options(rp_id="example.com")
		self.StorageService.get.return_value = {
			"_id": "c1",
			"k": "get",
			"o": WebAuthnJsonCodec().request_options_to_json(options),
			# Naive UTC, as returned by MongoDB
			"exp": datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None) - datetime.timedelta(seconds=5),
		}
		self.assertIsNone(await store.load("c1"))

		self.StorageService.get.side_effect = KeyError("NOT-FOUND")
		self.assertIsNone(await store.load("c2"))

		self.Collection.delete_many.return_value = unittest.mock.MagicMock(deleted_count=3)
		self.assertEqual(await store.delete_expired(), 3)


	async def test_create_duplicate_credential(self):
		repository = MongoDBCredentialRepository(self.StorageService)
		await repository.create(make_record())
		self.StorageService.upsertor.assert_called_with("wa", obj_id=b"cred-1", version=0)
		fields = self._stored_fields()
		self.assertEqual(fields["uid"], b"u1")
		self.assertNotIn("label", fields)

		self.Upsertor.execute.side_effect = asab.storage.exceptions.DuplicateError("Already exists", b"cred-1")
		with self.assertRaises(DuplicateCredentialError):
			await repository.create(make_record())


	async def test_compare_and_save(self):
		repository = MongoDBCredentialRepository(self.StorageService)
		self.Collection.update_one.return_value = unittest.mock.MagicMock(matched_count=1)
		self.assertTrue(await repository.compare_and_save(make_record(sign_count=6), expected_signature_count=5))
		query_filter, update = self.Collection.update_one.call_args.args
		self.assertEqual(query_filter, {"_id": b"cred-1", "sc": 5})
		self.assertEqual(update["$set"]["sc"], 6)
		self.assertEqual(update["$inc"], {"_v": 1})

		self.Collection.update_one.return_value = unittest.mock.MagicMock(matched_count=0)
		self.StorageService.get.return_value = make_record(sign_count=7).serialize()
		self.assertFalse(await repository.compare_and_save(make_record(sign_count=6), expected_signature_count=5))

		self.StorageService.get.side_effect = KeyError("NOT-FOUND")
		with self.assertRaises(UnknownCredentialError):
			await repository.compare_and_save(make_record(sign_count=6), expected_signature_count=5)


	async def test_find_credential(self):
		repository = MongoDBCredentialRepository(self.StorageService)
		record = make_record(Label="YubiKey")
		self.StorageService.get.return_value = record.serialize()
		self.assertEqual(await repository.find_by_credential_id(record.CredentialId), record)

		self.StorageService.get.side_effect = KeyError("NOT-FOUND")
		self.assertIsNone(await repository.find_by_credential_id(record.CredentialId))

		self.StorageService.delete.side_effect = KeyError("NOT-FOUND")
		with self.assertRaises(UnknownCredentialError):
			await repository.delete(record.CredentialId)


	async def test_user_entity_repository(self):
		repository = MongoDBUserEntityRepository(self.StorageService)
		user = UserEntity(Id=BinaryIdentifier(b"u1"), Name="alice", DisplayName="Alice")
		self.StorageService.get.side_effect = KeyError("NOT-FOUND")
		await repository.save(user)
		self.StorageService.upsertor.assert_called_once_with("wau", obj_id=b"u1", version=0)
		self.assertEqual(self._stored_fields(), {"username": "alice", "dn": "Alice"})

		self.Collection.find_one = unittest.mock.AsyncMock(return_value={"_id": b"u1", "username": "alice", "dn": "Alice"})
		self.assertEqual(await repository.find_by_username("alice"), user)
		self.Collection.find_one.assert_awaited_once_with({"username": "alice"})


	async def test_create_user_entity(self):
		repository = MongoDBUserEntityRepository(self.StorageService)
		self.Collection.create_index = unittest.mock.AsyncMock()
		await repository.initialize()
		self.Collection.create_index.assert_awaited_once_with([("username", 1)], unique=True)

		user = UserEntity(Id=BinaryIdentifier(b"u1"), Name="alice", DisplayName="Alice")
		await repository.create(user)
		self.StorageService.upsertor.assert_called_once_with("wau", obj_id=b"u1", version=0)
		self.assertEqual(self._stored_fields(), {"username": "alice", "dn": "Alice"})

		self.Upsertor.execute.side_effect = asab.storage.exceptions.DuplicateError("Already exists", b"u2")
		with self.assertRaises(DuplicateUserError) as cm:
			await repository.create(UserEntity(Id=BinaryIdentifier(b"u2"), Name="alice", DisplayName="Alice"))
		self.assertEqual(cm.exception.Username, "alice")
