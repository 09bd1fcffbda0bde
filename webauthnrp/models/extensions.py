import abc
import copy
import dataclasses
import logging
import typing

from ..exceptions import DecodeError

#

L = logging.getLogger(__name__)

#


# Client extension inputs and outputs form an open, string-keyed set.
# Well-known identifiers are decoded into typed variants, anything else is kept as OpaqueExtension
# so that responses from newer clients survive the round-trip.
# https://www.w3.org/TR/webauthn-3/#sctn-extensions


@dataclasses.dataclass(frozen=True)
class CredentialPropertiesInput:
	Identifier: typing.ClassVar[str] = "credProps"
	Requested: bool = True


@dataclasses.dataclass(frozen=True)
class CredentialPropertiesOutput:
	"""
	https://www.w3.org/TR/webauthn-3/#sctn-authenticator-credential-properties-extension
	"""
	Identifier: typing.ClassVar[str] = "credProps"
	# Whether the created credential is a client-side discoverable credential, None if unknown
	ResidentKey: typing.Optional[bool] = None
	# Members not interpreted here, kept verbatim
	Extra: dict = dataclasses.field(default_factory=dict)


@dataclasses.dataclass(frozen=True)
class AppIdInput:
	Identifier: typing.ClassVar[str] = "appid"
	AppId: str


@dataclasses.dataclass(frozen=True)
class AppIdOutput:
	Identifier: typing.ClassVar[str] = "appid"
	Used: bool


@dataclasses.dataclass(frozen=True)
class AppIdExcludeInput:
	Identifier: typing.ClassVar[str] = "appidExclude"
	AppId: str


@dataclasses.dataclass(frozen=True)
class OpaqueExtension:
	"""
	Extension that is not interpreted, only carried over verbatim
	"""
	Identifier: str
	Value: typing.Any


class _Extensions:

	def __init__(self, items=()):
		items = tuple(items)
		identifiers = [item.Identifier for item in items]
		if len(set(identifiers)) != len(identifiers):
			raise ValueError("Duplicate extension identifiers: {}".format(identifiers))
		self.Items = items


	def get(self, identifier: str, default=None):
		for item in self.Items:
			if item.Identifier == identifier:
				return item
		return default


	def identifiers(self) -> typing.List[str]:
		return [item.Identifier for item in self.Items]


	def __contains__(self, identifier):
		return self.get(identifier) is not None


	def __iter__(self):
		return iter(self.Items)


	def __len__(self):
		return len(self.Items)


	def __bool__(self):
		return len(self.Items) > 0


	def __eq__(self, other):
		if type(other) is not type(self):
			return NotImplemented
		return self.Items == other.Items


	def __repr__(self):
		return "{}({!r})".format(self.__class__.__name__, list(self.Items))


class ExtensionInputs(_Extensions):
	pass


class ExtensionOutputs(_Extensions):
	pass


class ExtensionCodecABC(abc.ABC):
	Identifier: str = None
	Variant: type = None

	@abc.abstractmethod
	def decode(self, value):
		pass

	@abc.abstractmethod
	def encode(self, extension):
		pass


class CredentialPropertiesInputCodec(ExtensionCodecABC):
	Identifier = "credProps"
	Variant = CredentialPropertiesInput

	def decode(self, value):
		if not isinstance(value, bool):
			raise DecodeError("Expected boolean", field="extensions.credProps")
		return CredentialPropertiesInput(Requested=value)

	def encode(self, extension):
		return extension.Requested


class CredentialPropertiesOutputCodec(ExtensionCodecABC):
	Identifier = "credProps"
	Variant = CredentialPropertiesOutput

	def decode(self, value):
		if not isinstance(value, dict):
			raise DecodeError("Expected object", field="clientExtensionResults.credProps")
		rk = value.get("rk")
		if rk is not None and not isinstance(rk, bool):
			raise DecodeError("Expected boolean", field="clientExtensionResults.credProps.rk")
		extra = {
			key: copy.deepcopy(item)
			for key, item in value.items()
			# An explicit null rk is carried over as it is
			if key != "rk" or item is None
		}
		return CredentialPropertiesOutput(ResidentKey=rk, Extra=extra)

	def encode(self, extension):
		result = copy.deepcopy(extension.Extra)
		if extension.ResidentKey is not None:
			result["rk"] = extension.ResidentKey
		return result


class AppIdInputCodec(ExtensionCodecABC):
	Identifier = "appid"
	Variant = AppIdInput

	def decode(self, value):
		if not isinstance(value, str):
			raise DecodeError("Expected string", field="extensions.appid")
		return AppIdInput(AppId=value)

	def encode(self, extension):
		return extension.AppId


class AppIdOutputCodec(ExtensionCodecABC):
	Identifier = "appid"
	Variant = AppIdOutput

	def decode(self, value):
		if not isinstance(value, bool):
			raise DecodeError("Expected boolean", field="clientExtensionResults.appid")
		return AppIdOutput(Used=value)

	def encode(self, extension):
		return extension.Used


class AppIdExcludeInputCodec(ExtensionCodecABC):
	Identifier = "appidExclude"
	Variant = AppIdExcludeInput

	def decode(self, value):
		if not isinstance(value, str):
			raise DecodeError("Expected string", field="extensions.appidExclude")
		return AppIdExcludeInput(AppId=value)

	def encode(self, extension):
		return extension.AppId


class ExtensionRegistry:
	"""
	Maps extension identifiers to the codecs of their typed input and output values.

	Unknown identifiers never fail: they are preserved as OpaqueExtension
	(or dropped, if the registry is told to).
	"""

	def __init__(self):
		self.InputCodecs = {}
		self.OutputCodecs = {}
		self.register_input(CredentialPropertiesInputCodec())
		self.register_input(AppIdInputCodec())
		self.register_input(AppIdExcludeInputCodec())
		self.register_output(CredentialPropertiesOutputCodec())
		self.register_output(AppIdOutputCodec())


	def register_input(self, codec: ExtensionCodecABC):
		self.InputCodecs[codec.Identifier] = codec


	def register_output(self, codec: ExtensionCodecABC):
		self.OutputCodecs[codec.Identifier] = codec


	def decode_inputs(self, raw: typing.Optional[dict], *, preserve_unknown: bool = True) -> ExtensionInputs:
		return ExtensionInputs(self._decode(raw, self.InputCodecs, preserve_unknown))


	def decode_outputs(self, raw: typing.Optional[dict], *, preserve_unknown: bool = True) -> ExtensionOutputs:
		return ExtensionOutputs(self._decode(raw, self.OutputCodecs, preserve_unknown))


	def encode(self, extensions: typing.Optional[_Extensions]) -> dict:
		if extensions is None:
			return {}
		if isinstance(extensions, ExtensionOutputs):
			codecs = self.OutputCodecs
		else:
			codecs = self.InputCodecs

		result = {}
		for extension in extensions:
			if isinstance(extension, OpaqueExtension):
				result[extension.Identifier] = copy.deepcopy(extension.Value)
				continue
			codec = codecs.get(extension.Identifier)
			if codec is None or not isinstance(extension, codec.Variant):
				raise ValueError("No codec registered for extension {!r}".format(extension))
			result[extension.Identifier] = codec.encode(extension)
		return result


	def _decode(self, raw, codecs, preserve_unknown):
		if raw is None:
			return []
		if not isinstance(raw, dict):
			raise DecodeError("Extensions must be an object")

		items = []
		for identifier, value in raw.items():
			codec = codecs.get(identifier)
			if codec is not None:
				items.append(codec.decode(value))
			elif preserve_unknown:
				items.append(OpaqueExtension(Identifier=identifier, Value=copy.deepcopy(value)))
			else:
				L.debug("Unknown WebAuthn extension {!r} dropped".format(identifier))
		return items
