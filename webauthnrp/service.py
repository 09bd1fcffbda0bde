import dataclasses
import logging
import typing

import asab

from .ceremony import RegistrationCeremony, AuthenticationCeremony
from .codec import WebAuthnJsonCodec
from .exceptions import DuplicateUserError, UnknownCredentialError, UserNotFoundError
from .models.binary import BinaryIdentifier
from .models.entities import UserEntity
from .models.options import CreationOptions, RequestOptions
from .models.record import CredentialRecord
from .relying_party import RelyingParty
from .storage import (
	MongoDBChallengeStore,
	MongoDBCredentialRepository,
	MongoDBUserEntityRepository,
)
from .verifier import PyWebAuthnAttestationVerifier, PyWebAuthnAssertionVerifier

#

L = logging.getLogger(__name__)

#

USER_ID_LENGTH = 32


class WebAuthnService(asab.Service):
	"""
	Registration and authentication ceremonies with issued options kept in the challenge store.

	Collaborators can be injected. By default, the options, credentials and user entities
	are stored via `asab.StorageService` and verified with py_webauthn.
	"""

	def __init__(
		self, app, service_name="webauthnrp.WebAuthnService", *,
		relying_party: RelyingParty = None,
		codec: WebAuthnJsonCodec = None,
		challenge_store=None,
		credential_repository=None,
		user_repository=None,
		attestation_verifier=None,
		assertion_verifier=None,
	):
		super().__init__(app, service_name)
		self.RelyingParty = relying_party or RelyingParty.from_config()
		self.Codec = codec or WebAuthnJsonCodec()

		if None in (challenge_store, credential_repository, user_repository):
			storage_service = app.get_service("asab.StorageService")
		else:
			storage_service = None

		self.ChallengeStore = challenge_store or MongoDBChallengeStore(
			storage_service, self.Codec, expiration=self.RelyingParty.Timeout)
		self.CredentialRepository = credential_repository or MongoDBCredentialRepository(storage_service)
		self.UserEntityRepository = user_repository or MongoDBUserEntityRepository(storage_service)

		self.RegistrationCeremony = RegistrationCeremony(
			self.RelyingParty,
			self.CredentialRepository,
			attestation_verifier or PyWebAuthnAttestationVerifier(self.RelyingParty, self.Codec),
		)
		self.AuthenticationCeremony = AuthenticationCeremony(
			self.RelyingParty,
			self.CredentialRepository,
			assertion_verifier or PyWebAuthnAssertionVerifier(self.RelyingParty, self.Codec),
		)

		app.PubSub.subscribe("Application.housekeeping!", self._on_housekeeping)


	async def initialize(self, app):
		await self.UserEntityRepository.initialize()


	async def _on_housekeeping(self, event_name):
		await self.ChallengeStore.delete_expired()


	async def get_or_create_user_entity(self, username: str, display_name: str = None) -> UserEntity:
		"""
		Find the user entity by username, or create one with a fresh random user handle
		"""
		user = await self.UserEntityRepository.find_by_username(username)
		if user is None:
			user = UserEntity(
				Id=BinaryIdentifier.random(USER_ID_LENGTH),
				Name=username,
				DisplayName=display_name or username,
			)
			try:
				await self.UserEntityRepository.create(user)
			except DuplicateUserError:
				# Created concurrently by another registration
				user = await self.UserEntityRepository.find_by_username(username)
				if user is None:
					raise UserNotFoundError(username)
				return user
			L.log(asab.LOG_NOTICE, "WebAuthn user entity created.", struct_data={
				"uid": user.Id.to_base64(),
				"username": username,
			})
		elif display_name is not None and display_name != user.DisplayName:
			user = dataclasses.replace(user, DisplayName=display_name)
			await self.UserEntityRepository.save(user)
		return user


	async def begin_registration(self, ceremony_id: str, username: str, display_name: str = None) -> dict:
		"""
		Issue registration options and return them in their WebAuthn JSON form,
		ready for `PublicKeyCredential.parseCreationOptionsFromJSON()`
		"""
		user = await self.get_or_create_user_entity(username, display_name)
		existing_credentials = await self.CredentialRepository.find_by_user_id(user.Id)
		options = self.RegistrationCeremony.begin(user, existing_credentials)
		await self.ChallengeStore.save(ceremony_id, options)
		return self.Codec.creation_options_to_json(options)


	async def finish_registration(self, ceremony_id: str, credential: dict, label: str = None) -> CredentialRecord:
		"""
		Verify the client's registration response and store the new credential.

		The issued options are consumed first, so any failed attempt also spends the challenge.
		"""
		options = await self.ChallengeStore.consume(ceremony_id)
		if not isinstance(options, CreationOptions):
			options = None
		envelope, request_label = self.Codec.parse_registration_request(credential)
		return await self.RegistrationCeremony.complete(options, envelope, label or request_label)


	async def begin_authentication(self, ceremony_id: str, username: str = None) -> dict:
		"""
		Issue authentication options and return them in their WebAuthn JSON form.

		Without username, the allow-list is empty (discoverable credential flow).
		"""
		if username is not None:
			user = await self.UserEntityRepository.find_by_username(username)
			if user is None:
				raise UserNotFoundError(username)
			allowed_credentials = await self.CredentialRepository.find_by_user_id(user.Id)
			if len(allowed_credentials) == 0:
				raise UnknownCredentialError()
		else:
			allowed_credentials = None

		options = self.AuthenticationCeremony.begin(allowed_credentials)
		await self.ChallengeStore.save(ceremony_id, options)
		return self.Codec.request_options_to_json(options)


	async def finish_authentication(self, ceremony_id: str, credential: dict) -> CredentialRecord:
		options = await self.ChallengeStore.consume(ceremony_id)
		if not isinstance(options, RequestOptions):
			options = None
		envelope = self.Codec.parse_authentication_credential(credential)
		return await self.AuthenticationCeremony.complete(options, envelope)


	async def list_credentials(self, user_id: BinaryIdentifier) -> typing.List[CredentialRecord]:
		return await self.CredentialRepository.find_by_user_id(_to_binary(user_id))


	async def get_credential(self, credential_id, user_id=None) -> CredentialRecord:
		"""
		Get credential record by its ID.

		If user_id is specified, ensure that the credential belongs to that user.
		"""
		credential_id = _to_binary(credential_id)
		record = await self.CredentialRepository.find_by_credential_id(credential_id)
		if record is None:
			raise UnknownCredentialError(credential_id)
		if user_id is not None and record.UserEntityId != _to_binary(user_id):
			raise UnknownCredentialError(credential_id)
		return record


	async def rename_credential(self, credential_id, label: str, user_id=None) -> CredentialRecord:
		record = await self.get_credential(credential_id, user_id)
		record = dataclasses.replace(record, Label=label)
		await self.CredentialRepository.save(record)
		L.log(asab.LOG_NOTICE, "WebAuthn credential updated.", struct_data={
			"wacid": record.CredentialId.to_base64(),
		})
		return record


	async def delete_credential(self, credential_id, user_id=None):
		record = await self.get_credential(credential_id, user_id)
		await self.CredentialRepository.delete(record.CredentialId)
		L.log(asab.LOG_NOTICE, "WebAuthn credential deleted.", struct_data={
			"wacid": record.CredentialId.to_base64(),
		})


	async def delete_user(self, user_id):
		"""
		Delete the user entity together with all its credentials
		"""
		user_id = _to_binary(user_id)
		for record in await self.CredentialRepository.find_by_user_id(user_id):
			await self.CredentialRepository.delete(record.CredentialId)
		await self.UserEntityRepository.delete(user_id)
		L.log(asab.LOG_NOTICE, "WebAuthn user entity deleted.", struct_data={"uid": user_id.to_base64()})


def _to_binary(value) -> BinaryIdentifier:
	if isinstance(value, BinaryIdentifier):
		return value
	if isinstance(value, str):
		return BinaryIdentifier.from_base64(value)
	return BinaryIdentifier(value)
