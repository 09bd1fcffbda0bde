import dataclasses
import datetime
import typing

from .exceptions import DecodeError
from .models.binary import BinaryIdentifier
from .models.const import (
	AttestationConveyancePreference,
	AuthenticatorAttachment,
	AuthenticatorTransport,
	CredentialAlgorithm,
	PublicKeyCredentialHint,
	PublicKeyCredentialType,
	ResidentKeyRequirement,
	UserVerificationRequirement,
)
from .models.credential import AssertionResponse, AttestationResponse, CredentialEnvelope
from .models.entities import (
	AuthenticatorSelectionCriteria,
	CredentialDescriptor,
	CredentialParameters,
	RpEntity,
	UserEntity,
)
from .models.extensions import ExtensionRegistry
from .models.options import CreationOptions, RequestOptions, DEFAULT_TIMEOUT
from .models.record import CredentialRecord


@dataclasses.dataclass(frozen=True)
class CodecConfig:
	"""
	JSON codec settings, passed explicitly to every WebAuthnJsonCodec
	"""
	# Encoding of every binary field (only unpadded base64url is interoperable)
	BinaryEncoding: str = "base64url"
	# "preserve" keeps unknown extensions as opaque values, "drop" discards them
	UnknownExtensionPolicy: str = "preserve"
	# "fail" rejects unknown enumeration values, "ignore" skips them
	EnumMismatchPolicy: str = "fail"

	def __post_init__(self):
		if self.BinaryEncoding != "base64url":
			raise ValueError("Unsupported binary encoding {!r}".format(self.BinaryEncoding))
		if self.UnknownExtensionPolicy not in {"preserve", "drop"}:
			raise ValueError("Unsupported unknown extension policy {!r}".format(self.UnknownExtensionPolicy))
		if self.EnumMismatchPolicy not in {"fail", "ignore"}:
			raise ValueError("Unsupported enum mismatch policy {!r}".format(self.EnumMismatchPolicy))


class WebAuthnJsonCodec:
	"""
	Converts WebAuthn objects to and from the WebAuthn Level 3 JSON serialization.

	https://www.w3.org/TR/webauthn-3/#sctn-parseCreationOptionsFromJSON
	"""

	def __init__(self, config: typing.Optional[CodecConfig] = None, registry: typing.Optional[ExtensionRegistry] = None):
		self.Config = config or CodecConfig()
		self.ExtensionRegistry = registry or ExtensionRegistry()
		self.PreserveUnknownExtensions = self.Config.UnknownExtensionPolicy == "preserve"


	# Options

	def creation_options_to_json(self, options: CreationOptions) -> dict:
		result = {
			"rp": {
				"id": options.Rp.Id,
				"name": options.Rp.Name,
			},
			"user": {
				"id": options.User.Id.to_base64(),
				"name": options.User.Name,
				"displayName": options.User.DisplayName,
			},
			"challenge": options.Challenge.to_base64(),
			"pubKeyCredParams": [
				{"type": str(param.Type), "alg": int(param.Algorithm)}
				for param in options.PubKeyCredParams
			],
			"timeout": _timeout_to_json(options.Timeout),
			"excludeCredentials": [
				self._descriptor_to_json(descriptor)
				for descriptor in options.ExcludeCredentials
			],
			"attestation": str(options.Attestation),
		}
		if options.AuthenticatorSelection is not None:
			result["authenticatorSelection"] = _authenticator_selection_to_json(options.AuthenticatorSelection)
		if options.Extensions:
			result["extensions"] = self.ExtensionRegistry.encode(options.Extensions)
		if len(options.Hints) > 0:
			result["hints"] = [str(hint) for hint in options.Hints]
		return result


	def request_options_to_json(self, options: RequestOptions) -> dict:
		result = {
			"challenge": options.Challenge.to_base64(),
			"timeout": _timeout_to_json(options.Timeout),
			"rpId": options.RpId,
			"allowCredentials": [
				self._descriptor_to_json(descriptor)
				for descriptor in options.AllowCredentials
			],
			"userVerification": str(options.UserVerification),
		}
		if options.Extensions:
			result["extensions"] = self.ExtensionRegistry.encode(options.Extensions)
		if len(options.Hints) > 0:
			result["hints"] = [str(hint) for hint in options.Hints]
		return result


	def parse_creation_options(self, data: dict) -> CreationOptions:
		_expect_object(data, "options")
		rp = _expect_object(data.get("rp"), "rp")
		user = _expect_object(data.get("user"), "user")
		params = []
		for param in _expect_list(data.get("pubKeyCredParams"), "pubKeyCredParams"):
			param = _expect_object(param, "pubKeyCredParams")
			_parse_credential_type(param.get("type"), "pubKeyCredParams.type")
			params.append(CredentialParameters(Algorithm=CredentialAlgorithm.from_code(param.get("alg"))))

		selection = data.get("authenticatorSelection")
		if selection is not None:
			selection = self._parse_authenticator_selection(_expect_object(selection, "authenticatorSelection"))

		return CreationOptions(
			Rp=RpEntity(Id=_expect_str(rp.get("id"), "rp.id"), Name=_expect_str(rp.get("name"), "rp.name")),
			User=UserEntity(
				Id=_parse_binary(user, "id", "user.id"),
				Name=_expect_str(user.get("name"), "user.name"),
				DisplayName=_expect_str(user.get("displayName", ""), "user.displayName"),
			),
			Challenge=_parse_binary(data, "challenge"),
			PubKeyCredParams=tuple(params),
			Timeout=_parse_timeout(data.get("timeout")),
			ExcludeCredentials=tuple(
				self._parse_descriptor(descriptor, "excludeCredentials")
				for descriptor in _expect_list(data.get("excludeCredentials", []), "excludeCredentials")
			),
			AuthenticatorSelection=selection,
			Attestation=self._parse_enum(
				AttestationConveyancePreference, data.get("attestation", "none"), "attestation",
				default=AttestationConveyancePreference.NONE,
			),
			Extensions=self.ExtensionRegistry.decode_inputs(
				data.get("extensions"), preserve_unknown=self.PreserveUnknownExtensions),
			Hints=self._parse_enum_list(PublicKeyCredentialHint, data.get("hints", []), "hints"),
		)


	def parse_request_options(self, data: dict) -> RequestOptions:
		_expect_object(data, "options")
		return RequestOptions(
			Challenge=_parse_binary(data, "challenge"),
			RpId=_expect_str(data.get("rpId"), "rpId"),
			Timeout=_parse_timeout(data.get("timeout")),
			AllowCredentials=tuple(
				self._parse_descriptor(descriptor, "allowCredentials")
				for descriptor in _expect_list(data.get("allowCredentials", []), "allowCredentials")
			),
			UserVerification=self._parse_enum(
				UserVerificationRequirement, data.get("userVerification", "preferred"), "userVerification",
				default=UserVerificationRequirement.PREFERRED,
			),
			Extensions=self.ExtensionRegistry.decode_inputs(
				data.get("extensions"), preserve_unknown=self.PreserveUnknownExtensions),
			Hints=self._parse_enum_list(PublicKeyCredentialHint, data.get("hints", []), "hints"),
		)


	# Credentials

	def parse_registration_credential(self, data: dict) -> CredentialEnvelope:
		_expect_object(data, "credential")
		response = _expect_object(data.get("response"), "response")

		algorithm = response.get("publicKeyAlgorithm")
		if algorithm is not None:
			algorithm = CredentialAlgorithm.from_code(algorithm)

		attestation_response = AttestationResponse(
			ClientDataJSON=_parse_binary(response, "clientDataJSON", "response.clientDataJSON"),
			AttestationObject=_parse_binary(response, "attestationObject", "response.attestationObject"),
			Transports=self._parse_enum_list(
				AuthenticatorTransport, response.get("transports", []), "response.transports"),
			PublicKeyAlgorithm=algorithm,
			PublicKey=_parse_binary(response, "publicKey", "response.publicKey", required=False),
			AuthenticatorData=_parse_binary(response, "authenticatorData", "response.authenticatorData", required=False),
		)
		return self._parse_envelope(data, attestation_response)


	def parse_authentication_credential(self, data: dict) -> CredentialEnvelope:
		_expect_object(data, "credential")
		response = _expect_object(data.get("response"), "response")

		user_handle = response.get("userHandle")
		if user_handle == "":
			# Some clients send an empty string instead of null
			user_handle = None
		if user_handle is not None:
			user_handle = BinaryIdentifier.from_base64(_expect_str(user_handle, "response.userHandle"))

		assertion_response = AssertionResponse(
			AuthenticatorData=_parse_binary(response, "authenticatorData", "response.authenticatorData"),
			ClientDataJSON=_parse_binary(response, "clientDataJSON", "response.clientDataJSON"),
			Signature=_parse_binary(response, "signature", "response.signature"),
			UserHandle=user_handle,
		)
		return self._parse_envelope(data, assertion_response)


	def parse_registration_request(self, data: dict) -> typing.Tuple[CredentialEnvelope, typing.Optional[str]]:
		"""
		Parse a registration request, which is either a bare credential
		or a credential wrapped together with its user-given label:

		{"publicKey": {"credential": {...}, "label": "Cell Phone"}}
		"""
		_expect_object(data, "request")
		if "publicKey" not in data:
			return self.parse_registration_credential(data), None

		public_key = _expect_object(data["publicKey"], "publicKey")
		label = public_key.get("label")
		if label is not None:
			label = _expect_str(label, "publicKey.label")
		return self.parse_registration_credential(public_key.get("credential")), label


	def credential_to_json(self, envelope: CredentialEnvelope) -> dict:
		response = envelope.Response
		if isinstance(response, AttestationResponse):
			response_json = {
				"clientDataJSON": response.ClientDataJSON.to_base64(),
				"attestationObject": response.AttestationObject.to_base64(),
				"transports": [str(transport) for transport in response.Transports],
			}
			if response.PublicKeyAlgorithm is not None:
				response_json["publicKeyAlgorithm"] = int(response.PublicKeyAlgorithm)
			if response.PublicKey is not None:
				response_json["publicKey"] = response.PublicKey.to_base64()
			if response.AuthenticatorData is not None:
				response_json["authenticatorData"] = response.AuthenticatorData.to_base64()
		else:
			response_json = {
				"authenticatorData": response.AuthenticatorData.to_base64(),
				"clientDataJSON": response.ClientDataJSON.to_base64(),
				"signature": response.Signature.to_base64(),
			}
			if response.UserHandle is not None:
				response_json["userHandle"] = response.UserHandle.to_base64()

		result = {
			"id": envelope.Id,
			"rawId": envelope.RawId.to_base64(),
			"response": response_json,
			"type": str(envelope.Type),
			"clientExtensionResults": self.ExtensionRegistry.encode(envelope.ClientExtensionResults),
		}
		if envelope.AuthenticatorAttachment is not None:
			result["authenticatorAttachment"] = str(envelope.AuthenticatorAttachment)
		return result


	def record_to_json(self, record: CredentialRecord) -> dict:
		"""
		Public view of a credential record, for credential management endpoints
		"""
		result = {
			"id": record.CredentialId.to_base64(),
			"userId": record.UserEntityId.to_base64(),
			"label": record.Label,
			"algorithm": record.Algorithm.name,
			"signCount": record.SignatureCount,
			"transports": [str(transport) for transport in record.Transports],
			"backupEligible": record.BackupEligible,
			"backupState": record.BackupState,
		}
		if record.AttestationFormat is not None:
			result["attestationFormat"] = record.AttestationFormat
		if record.Aaguid is not None:
			result["aaguid"] = record.Aaguid
		if record.Created is not None:
			result["created"] = record.Created.isoformat()
		if record.LastUsed is not None:
			result["lastUsed"] = record.LastUsed.isoformat()
		return result


	def _parse_envelope(self, data, response):
		credential_id = _expect_str(data.get("id"), "id")
		raw_id = _parse_binary(data, "rawId")
		_parse_credential_type(data.get("type"), "type")

		attachment = data.get("authenticatorAttachment")
		if attachment is not None:
			attachment = self._parse_enum(AuthenticatorAttachment, attachment, "authenticatorAttachment")

		return CredentialEnvelope(
			Id=credential_id,
			RawId=raw_id,
			Response=response,
			ClientExtensionResults=self.ExtensionRegistry.decode_outputs(
				data.get("clientExtensionResults", {}), preserve_unknown=self.PreserveUnknownExtensions),
			AuthenticatorAttachment=attachment,
		)


	def _descriptor_to_json(self, descriptor: CredentialDescriptor) -> dict:
		result = {
			"type": str(descriptor.Type),
			"id": descriptor.Id.to_base64(),
		}
		if descriptor.Transports is not None:
			result["transports"] = [str(transport) for transport in descriptor.Transports]
		return result


	def _parse_descriptor(self, data, field) -> CredentialDescriptor:
		data = _expect_object(data, field)
		_parse_credential_type(data.get("type"), "{}.type".format(field))
		transports = data.get("transports")
		if transports is not None:
			transports = self._parse_enum_list(AuthenticatorTransport, transports, "{}.transports".format(field))
		return CredentialDescriptor(
			Id=_parse_binary(data, "id", "{}.id".format(field)),
			Transports=transports,
		)


	def _parse_authenticator_selection(self, data) -> AuthenticatorSelectionCriteria:
		attachment = data.get("authenticatorAttachment")
		if attachment is not None:
			attachment = self._parse_enum(AuthenticatorAttachment, attachment, "authenticatorSelection.authenticatorAttachment")

		resident_key = data.get("residentKey")
		if resident_key is not None:
			resident_key = self._parse_enum(ResidentKeyRequirement, resident_key, "authenticatorSelection.residentKey")
		elif data.get("requireResidentKey") is True:
			resident_key = ResidentKeyRequirement.REQUIRED

		user_verification = data.get("userVerification")
		if user_verification is not None:
			user_verification = self._parse_enum(
				UserVerificationRequirement, user_verification, "authenticatorSelection.userVerification")

		return AuthenticatorSelectionCriteria(
			AuthenticatorAttachment=attachment,
			ResidentKey=resident_key,
			UserVerification=user_verification,
		)


	def _parse_enum(self, enum_class, value, field, default=None):
		try:
			return enum_class(value)
		except ValueError:
			if self.Config.EnumMismatchPolicy == "ignore":
				return default
			raise DecodeError("Unsupported value {!r}".format(value), field=field)


	def _parse_enum_list(self, enum_class, values, field) -> tuple:
		result = []
		for value in _expect_list(values, field):
			parsed = self._parse_enum(enum_class, value, field)
			if parsed is not None:
				result.append(parsed)
		return tuple(result)


def _timeout_to_json(timeout: datetime.timedelta) -> int:
	return int(timeout.total_seconds() * 1000)


def _parse_timeout(value) -> datetime.timedelta:
	# Timeout is optional in JSON, but required in our options
	if value is None:
		return DEFAULT_TIMEOUT
	if isinstance(value, bool) or not isinstance(value, int):
		raise DecodeError("Expected integer milliseconds", field="timeout")
	return datetime.timedelta(milliseconds=value)


def _authenticator_selection_to_json(selection: AuthenticatorSelectionCriteria) -> dict:
	result = {}
	if selection.AuthenticatorAttachment is not None:
		result["authenticatorAttachment"] = str(selection.AuthenticatorAttachment)
	if selection.ResidentKey is not None:
		result["residentKey"] = str(selection.ResidentKey)
		result["requireResidentKey"] = selection.RequireResidentKey
	if selection.UserVerification is not None:
		result["userVerification"] = str(selection.UserVerification)
	return result


def _parse_credential_type(value, field):
	# The credential type is fail-closed regardless of the enum mismatch policy
	if value != PublicKeyCredentialType.PUBLIC_KEY:
		raise DecodeError("Unsupported credential type {!r}".format(value), field=field)
	return PublicKeyCredentialType.PUBLIC_KEY


def _parse_binary(data: dict, key: str, field: str = None, required: bool = True) -> typing.Optional[BinaryIdentifier]:
	field = field or key
	value = data.get(key)
	if value is None:
		if required:
			raise DecodeError("Missing value", field=field)
		return None
	try:
		return BinaryIdentifier.from_base64(_expect_str(value, field))
	except DecodeError as e:
		if e.Field is not None:
			raise
		raise DecodeError(str(e), field=field)


def _expect_object(value, field) -> dict:
	if not isinstance(value, dict):
		raise DecodeError("Expected object", field=field)
	return value


def _expect_list(value, field) -> list:
	if not isinstance(value, list):
		raise DecodeError("Expected array", field=field)
	return value


def _expect_str(value, field) -> str:
	if not isinstance(value, str):
		raise DecodeError("Expected string", field=field)
	return value
