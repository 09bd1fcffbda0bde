import asyncio
import datetime
import unittest
import unittest.mock

from authenticator import SoftwareAuthenticator

from webauthnrp import RelyingParty, WebAuthnService
from webauthnrp.exceptions import (
	ChallengeMismatchError,
	DecodeError,
	OriginMismatchError,
	UnknownCredentialError,
	UserNotFoundError,
)
from webauthnrp.models import BinaryIdentifier
from webauthnrp.storage import (
	InMemoryChallengeStore,
	InMemoryCredentialRepository,
	InMemoryUserEntityRepository,
)


ORIGIN = "https://auth.example.com"


class SlowUserEntityRepository(InMemoryUserEntityRepository):
	"""
	Gives control to the event loop on every call, like a networked database would
	"""

	async def find_by_username(self, username):
		await asyncio.sleep(0)
		return await super().find_by_username(username)

	async def create(self, user):
		await asyncio.sleep(0)
		return await super().create(user)


class WebAuthnServiceTestCase(unittest.IsolatedAsyncioTestCase):
	maxDiff = None

	def setUp(self):
		self.App = unittest.mock.MagicMock()
		self.ChallengeStore = InMemoryChallengeStore()
		self.Service = WebAuthnService(
			self.App,
			relying_party=RelyingParty(origins=[ORIGIN], name="Example"),
			challenge_store=self.ChallengeStore,
			credential_repository=InMemoryCredentialRepository(),
			user_repository=InMemoryUserEntityRepository(),
		)
		self.Authenticator = SoftwareAuthenticator(ORIGIN)


	async def _register(self, ceremony_id="reg-1", username="alice", label=None):
		options = await self.Service.begin_registration(ceremony_id, username)
		credential = self.Authenticator.make_credential(options)
		if label is not None:
			credential = {"publicKey": {"credential": credential, "label": label}}
		return await self.Service.finish_registration(ceremony_id, credential)


	def test_init(self):
		self.assertEqual(self.Service.RelyingParty.Id, "auth.example.com")
		self.App.PubSub.subscribe.assert_called_once_with("Application.housekeeping!", self.Service._on_housekeeping)


	async def test_begin_registration(self):
		options = await self.Service.begin_registration("reg-1", "alice", "Alice Liddell")
		self.assertEqual(options["rp"], {"id": "auth.example.com", "name": "Example"})
		self.assertEqual(options["user"]["name"], "alice")
		self.assertEqual(options["user"]["displayName"], "Alice Liddell")
		self.assertEqual(len(BinaryIdentifier.from_base64(options["user"]["id"])), 32)
		self.assertEqual(len(BinaryIdentifier.from_base64(options["challenge"])), 32)
		self.assertEqual([param["alg"] for param in options["pubKeyCredParams"]], [-7, -257])
		self.assertEqual(options["timeout"], 300000)
		self.assertEqual(options["extensions"], {"credProps": True})
		self.assertEqual(options["authenticatorSelection"]["residentKey"], "preferred")

		stored = await self.ChallengeStore.load("reg-1")
		self.assertEqual(stored.Challenge.to_base64(), options["challenge"])


	async def test_user_entity_is_stable(self):
		first = await self.Service.begin_registration("reg-1", "alice")
		second = await self.Service.begin_registration("reg-2", "alice")
		other = await self.Service.begin_registration("reg-3", "bob")
		self.assertEqual(first["user"]["id"], second["user"]["id"])
		self.assertNotEqual(first["user"]["id"], other["user"]["id"])
		self.assertNotEqual(first["challenge"], second["challenge"])


	async def test_concurrent_user_entity_creation(self):
		user_repository = SlowUserEntityRepository()
		service = WebAuthnService(
			self.App,
			relying_party=RelyingParty(origins=[ORIGIN], name="Example"),
			challenge_store=InMemoryChallengeStore(),
			credential_repository=InMemoryCredentialRepository(),
			user_repository=user_repository,
		)
		first, second = await asyncio.gather(
			service.begin_registration("reg-1", "alice"),
			service.begin_registration("reg-2", "alice"),
		)
		self.assertEqual(first["user"]["id"], second["user"]["id"])
		self.assertEqual(len(user_repository.Users), 1)


	async def test_registration_and_authentication(self):
		record = await self._register(label="Cell Phone")
		self.assertEqual(record.Label, "Cell Phone")
		self.assertEqual(record.SignatureCount, 0)

		options = await self.Service.begin_authentication("auth-1", "alice")
		self.assertEqual([descriptor["id"] for descriptor in options["allowCredentials"]], [record.CredentialId.to_base64()])
		credential = self.Authenticator.get_assertion(options)
		authenticated = await self.Service.finish_authentication("auth-1", credential)
		self.assertEqual(authenticated.UserEntityId, record.UserEntityId)
		self.assertEqual(authenticated.SignatureCount, 1)


	async def test_second_registration_excludes_first(self):
		record = await self._register()
		options = await self.Service.begin_registration("reg-2", "alice")
		self.assertEqual(
			[descriptor["id"] for descriptor in options["excludeCredentials"]],
			[record.CredentialId.to_base64()]
		)


	async def test_discoverable_authentication(self):
		record = await self._register()
		options = await self.Service.begin_authentication("auth-1")
		self.assertEqual(options["allowCredentials"], [])
		credential = self.Authenticator.get_assertion(options, credential_id=record.CredentialId.to_bytes())
		authenticated = await self.Service.finish_authentication("auth-1", credential)
		self.assertEqual(authenticated.UserEntityId, record.UserEntityId)


	async def test_unknown_user(self):
		with self.assertRaises(UserNotFoundError):
			await self.Service.begin_authentication("auth-1", "mallory")


	async def test_user_without_credentials(self):
		await self.Service.begin_registration("reg-1", "alice")
		with self.assertRaises(UnknownCredentialError):
			await self.Service.begin_authentication("auth-1", "alice")


	async def test_registration_replay(self):
		options = await self.Service.begin_registration("reg-1", "alice")
		credential = self.Authenticator.make_credential(options)
		await self.Service.finish_registration("reg-1", credential)
		with self.assertRaises(ChallengeMismatchError):
			await self.Service.finish_registration("reg-1", credential)


	async def test_failed_registration_consumes_challenge(self):
		options = await self.Service.begin_registration("reg-1", "alice")
		forged = self.Authenticator.make_credential(options, origin="https://evil.example")
		with self.assertRaises(OriginMismatchError):
			await self.Service.finish_registration("reg-1", forged)

		credential = self.Authenticator.make_credential(options)
		with self.assertRaises(ChallengeMismatchError):
			await self.Service.finish_registration("reg-1", credential)


	async def test_malformed_payload_consumes_challenge(self):
		options = await self.Service.begin_registration("reg-1", "alice")
		with self.assertRaises(DecodeError):
			await self.Service.finish_registration("reg-1", {"id": "AQ", "rawId": "AQ", "type": "public-key"})
		with self.assertRaises(ChallengeMismatchError):
			await self.Service.finish_registration("reg-1", self.Authenticator.make_credential(options))


	async def test_authentication_replay(self):
		await self._register()
		options = await self.Service.begin_authentication("auth-1", "alice")
		credential = self.Authenticator.get_assertion(options)
		await self.Service.finish_authentication("auth-1", credential)
		with self.assertRaises(ChallengeMismatchError):
			await self.Service.finish_authentication("auth-1", credential)


	async def test_ceremony_kind_mismatch(self):
		await self._register()
		options = await self.Service.begin_authentication("ceremony-1", "alice")
		credential = self.Authenticator.make_credential({
			"rp": {"id": "auth.example.com"},
			"user": {"id": "dTE"},
			"challenge": options["challenge"],
		})
		with self.assertRaises(ChallengeMismatchError):
			await self.Service.finish_registration("ceremony-1", credential)


	async def test_expired_challenge(self):
		self.ChallengeStore.Expiration = datetime.timedelta(seconds=-1)
		options = await self.Service.begin_registration("reg-1", "alice")
		with self.assertRaises(ChallengeMismatchError):
			await self.Service.finish_registration("reg-1", self.Authenticator.make_credential(options))


	async def test_housekeeping(self):
		self.ChallengeStore.Expiration = datetime.timedelta(seconds=-1)
		await self.Service.begin_registration("reg-1", "alice")
		await self.Service.begin_registration("reg-2", "alice")
		self.assertEqual(len(self.ChallengeStore.Options), 2)
		await self.Service._on_housekeeping("Application.housekeeping!")
		self.assertEqual(len(self.ChallengeStore.Options), 0)


	async def test_credential_management(self):
		record = await self._register("reg-1", "alice")
		bob_record = await self._register("reg-2", "bob")

		credentials = await self.Service.list_credentials(record.UserEntityId)
		self.assertEqual([r.CredentialId for r in credentials], [record.CredentialId])

		renamed = await self.Service.rename_credential(record.CredentialId.to_base64(), "Laptop", record.UserEntityId)
		self.assertEqual(renamed.Label, "Laptop")
		self.assertEqual((await self.Service.get_credential(record.CredentialId)).Label, "Laptop")

		# Bob cannot touch Alice's credential
		with self.assertRaises(UnknownCredentialError):
			await self.Service.rename_credential(record.CredentialId, "Mine", bob_record.UserEntityId)
		with self.assertRaises(UnknownCredentialError):
			await self.Service.delete_credential(record.CredentialId, bob_record.UserEntityId)

		await self.Service.delete_credential(record.CredentialId, record.UserEntityId)
		self.assertEqual(await self.Service.list_credentials(record.UserEntityId), [])
		with self.assertRaises(UnknownCredentialError):
			await self.Service.delete_credential(record.CredentialId)


	async def test_delete_user(self):
		record = await self._register()
		await self.Service.delete_user(record.UserEntityId)
		self.assertEqual(await self.Service.list_credentials(record.UserEntityId), [])
		with self.assertRaises(UserNotFoundError):
			await self.Service.begin_authentication("auth-1", "alice")
