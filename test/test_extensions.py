import unittest

from webauthnrp.exceptions import DecodeError
from webauthnrp.models import (
	AppIdInput,
	AppIdOutput,
	CredentialPropertiesInput,
	CredentialPropertiesOutput,
	ExtensionCodecABC,
	ExtensionInputs,
	ExtensionOutputs,
	ExtensionRegistry,
	OpaqueExtension,
)


class ExtensionRegistryTestCase(unittest.TestCase):
	maxDiff = None

	def setUp(self):
		self.Registry = ExtensionRegistry()


	def test_decode_credential_properties_output(self):
		outputs = self.Registry.decode_outputs({"credProps": {"rk": False}})
		self.assertEqual(outputs, ExtensionOutputs([CredentialPropertiesOutput(ResidentKey=False)]))
		self.assertIs(outputs.get("credProps").ResidentKey, False)


	def test_known_outputs_round_trip(self):
		raw = {"credProps": {"rk": True}, "appid": False}
		outputs = self.Registry.decode_outputs(raw)
		self.assertIsInstance(outputs.get("appid"), AppIdOutput)
		self.assertEqual(self.Registry.encode(outputs), raw)


	def test_known_inputs_round_trip(self):
		raw = {"credProps": True, "appid": "https://example.com/appid.json", "appidExclude": "https://example.com"}
		inputs = self.Registry.decode_inputs(raw)
		self.assertEqual(inputs.get("credProps"), CredentialPropertiesInput(Requested=True))
		self.assertEqual(inputs.get("appid"), AppIdInput(AppId="https://example.com/appid.json"))
		self.assertEqual(self.Registry.encode(inputs), raw)


	def test_unknown_extension_preserved(self):
		raw = {
			"credProps": {"rk": True},
			"largeBlob": {"supported": True, "blob": ["a", 1, None]},
		}
		outputs = self.Registry.decode_outputs(raw)
		self.assertEqual(outputs.identifiers(), ["credProps", "largeBlob"])
		self.assertIsInstance(outputs.get("largeBlob"), OpaqueExtension)
		self.assertEqual(self.Registry.encode(outputs), raw)


	def test_unknown_extension_value_is_copied(self):
		raw = {"prf": {"results": {"first": "AQ"}}}
		outputs = self.Registry.decode_outputs(raw)
		raw["prf"]["results"]["first"] = "changed"
		self.assertEqual(self.Registry.encode(outputs), {"prf": {"results": {"first": "AQ"}}})


	def test_unknown_extension_dropped(self):
		outputs = self.Registry.decode_outputs({"largeBlob": {}, "credProps": {}}, preserve_unknown=False)
		self.assertEqual(outputs.identifiers(), ["credProps"])
		self.assertIsNone(outputs.get("credProps").ResidentKey)
		self.assertEqual(self.Registry.encode(outputs), {"credProps": {}})


	def test_malformed_known_extension(self):
		with self.assertRaises(DecodeError):
			self.Registry.decode_outputs({"credProps": {"rk": "yes"}})
		with self.assertRaises(DecodeError):
			self.Registry.decode_inputs({"credProps": "true"})
		with self.assertRaises(DecodeError):
			self.Registry.decode_outputs(["credProps"])


	def test_empty(self):
		self.assertFalse(self.Registry.decode_inputs(None))
		self.assertEqual(self.Registry.encode(ExtensionInputs()), {})
		self.assertEqual(self.Registry.encode(None), {})


	def test_duplicate_identifier(self):
		with self.assertRaises(ValueError):
			ExtensionInputs([CredentialPropertiesInput(), OpaqueExtension("credProps", True)])


	def test_credential_properties_members_preserved(self):
		raw = {"credProps": {"rk": True, "authenticatorDisplayName": "Phone"}}
		outputs = self.Registry.decode_outputs(raw)
		credential_properties = outputs.get("credProps")
		self.assertIs(credential_properties.ResidentKey, True)
		self.assertEqual(credential_properties.Extra, {"authenticatorDisplayName": "Phone"})
		self.assertEqual(self.Registry.encode(outputs), raw)


	def test_credential_properties_null_resident_key(self):
		raw = {"credProps": {"rk": None}}
		outputs = self.Registry.decode_outputs(raw)
		self.assertIsNone(outputs.get("credProps").ResidentKey)
		self.assertEqual(self.Registry.encode(outputs), raw)


	def test_codec_must_implement_decode_and_encode(self):
		class DecodeOnlyCodec(ExtensionCodecABC):
			Identifier = "example"

			def decode(self, value):
				return OpaqueExtension(self.Identifier, value)

		with self.assertRaises(TypeError):
			DecodeOnlyCodec()
