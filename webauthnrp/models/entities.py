import dataclasses
import typing

from .binary import BinaryIdentifier
from .const import (
	AuthenticatorAttachment,
	AuthenticatorTransport,
	CredentialAlgorithm,
	PublicKeyCredentialType,
	ResidentKeyRequirement,
	UserVerificationRequirement,
)
from ..exceptions import InvalidOptionsError


@dataclasses.dataclass(frozen=True)
class RpEntity:
	"""
	https://www.w3.org/TR/webauthn-3/#dictdef-publickeycredentialrpentity
	"""
	Id: str
	Name: str

	def __post_init__(self):
		if not self.Id:
			raise InvalidOptionsError("Relying party ID is required.")
		if not self.Name:
			raise InvalidOptionsError("Relying party name is required.")


@dataclasses.dataclass(frozen=True)
class UserEntity:
	"""
	https://www.w3.org/TR/webauthn-3/#dictdef-publickeycredentialuserentity

	`Id` is the user handle. It must not contain personally identifying information
	and stays the same when the user changes their name.
	"""
	Id: BinaryIdentifier
	Name: str
	DisplayName: str

	def __post_init__(self):
		if not isinstance(self.Id, BinaryIdentifier) or len(self.Id) == 0:
			raise InvalidOptionsError("User ID is required.")
		if len(self.Id) > 64:
			raise InvalidOptionsError("User ID must not be longer than 64 bytes.")
		if not self.Name:
			raise InvalidOptionsError("User name is required.")


@dataclasses.dataclass(frozen=True)
class CredentialParameters:
	Algorithm: CredentialAlgorithm
	Type: PublicKeyCredentialType = PublicKeyCredentialType.PUBLIC_KEY


@dataclasses.dataclass(frozen=True)
class CredentialDescriptor:
	"""
	https://www.w3.org/TR/webauthn-3/#dictdef-publickeycredentialdescriptor
	"""
	Id: BinaryIdentifier
	Type: PublicKeyCredentialType = PublicKeyCredentialType.PUBLIC_KEY
	Transports: typing.Optional[typing.Tuple[AuthenticatorTransport, ...]] = None


@dataclasses.dataclass(frozen=True)
class AuthenticatorSelectionCriteria:
	AuthenticatorAttachment: typing.Optional[AuthenticatorAttachment] = None
	ResidentKey: typing.Optional[ResidentKeyRequirement] = None
	UserVerification: typing.Optional[UserVerificationRequirement] = None

	@property
	def RequireResidentKey(self) -> typing.Optional[bool]:
		# Level 1 clients only understand the boolean form
		if self.ResidentKey is None:
			return None
		return self.ResidentKey == ResidentKeyRequirement.REQUIRED
