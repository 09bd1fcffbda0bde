import dataclasses
import json
import typing

from .binary import BinaryIdentifier
from .const import (
	AuthenticatorAttachment,
	AuthenticatorTransport,
	CredentialAlgorithm,
	PublicKeyCredentialType,
)
from .extensions import ExtensionOutputs
from ..exceptions import DecodeError


@dataclasses.dataclass(frozen=True)
class AttestationResponse:
	"""
	Registration payload of a public key credential

	https://www.w3.org/TR/webauthn-3/#iface-authenticatorattestationresponse
	"""
	ClientDataJSON: BinaryIdentifier
	AttestationObject: BinaryIdentifier
	Transports: typing.Tuple[AuthenticatorTransport, ...] = ()
	PublicKeyAlgorithm: typing.Optional[CredentialAlgorithm] = None
	# DER SubjectPublicKeyInfo, reported by Level 3 clients for convenience
	PublicKey: typing.Optional[BinaryIdentifier] = None
	AuthenticatorData: typing.Optional[BinaryIdentifier] = None


@dataclasses.dataclass(frozen=True)
class AssertionResponse:
	"""
	Authentication payload of a public key credential

	https://www.w3.org/TR/webauthn-3/#iface-authenticatorassertionresponse
	"""
	AuthenticatorData: BinaryIdentifier
	ClientDataJSON: BinaryIdentifier
	Signature: BinaryIdentifier
	UserHandle: typing.Optional[BinaryIdentifier] = None


@dataclasses.dataclass(frozen=True)
class CredentialEnvelope:
	"""
	PublicKeyCredential returned by the client, carrying either an attestation (registration)
	or an assertion (authentication) response

	https://www.w3.org/TR/webauthn-3/#iface-pkcredential
	"""
	Id: str
	RawId: BinaryIdentifier
	Response: typing.Union[AttestationResponse, AssertionResponse]
	Type: PublicKeyCredentialType = PublicKeyCredentialType.PUBLIC_KEY
	ClientExtensionResults: ExtensionOutputs = dataclasses.field(default_factory=ExtensionOutputs)
	AuthenticatorAttachment: typing.Optional[AuthenticatorAttachment] = None

	def __post_init__(self):
		if self.Type != PublicKeyCredentialType.PUBLIC_KEY:
			raise DecodeError("Unsupported credential type {!r}".format(self.Type), field="type")
		if not isinstance(self.Response, (AttestationResponse, AssertionResponse)):
			raise DecodeError("Unsupported response kind {}".format(type(self.Response).__name__), field="response")
		if not isinstance(self.RawId, BinaryIdentifier) or len(self.RawId) == 0:
			raise DecodeError("Credential ID is empty", field="rawId")
		if self.Id != self.RawId.to_base64():
			raise DecodeError("Credential 'id' does not match 'rawId'", field="id")


	@property
	def is_attestation(self) -> bool:
		return isinstance(self.Response, AttestationResponse)


	@property
	def is_assertion(self) -> bool:
		return isinstance(self.Response, AssertionResponse)


@dataclasses.dataclass(frozen=True)
class CollectedClientData:
	"""
	Parsed clientDataJSON

	https://www.w3.org/TR/webauthn-3/#dictdef-collectedclientdata
	"""
	Type: str
	Challenge: BinaryIdentifier
	Origin: str
	CrossOrigin: bool = False
	TopOrigin: typing.Optional[str] = None

	@classmethod
	def parse(cls, client_data_json: BinaryIdentifier) -> "CollectedClientData":
		try:
			data = json.loads(client_data_json.to_bytes().decode("utf-8"))
		except (UnicodeDecodeError, ValueError):
			raise DecodeError("Malformed JSON", field="clientDataJSON")
		if not isinstance(data, dict):
			raise DecodeError("Expected object", field="clientDataJSON")

		for key in ("type", "challenge", "origin"):
			if not isinstance(data.get(key), str):
				raise DecodeError("Missing or invalid {!r}".format(key), field="clientDataJSON")

		cross_origin = data.get("crossOrigin", False)
		if not isinstance(cross_origin, bool):
			raise DecodeError("Invalid 'crossOrigin'", field="clientDataJSON")

		top_origin = data.get("topOrigin")
		if top_origin is not None and not isinstance(top_origin, str):
			raise DecodeError("Invalid 'topOrigin'", field="clientDataJSON")

		return cls(
			Type=data["type"],
			Challenge=BinaryIdentifier.from_base64(data["challenge"]),
			Origin=data["origin"],
			CrossOrigin=cross_origin,
			TopOrigin=top_origin,
		)
