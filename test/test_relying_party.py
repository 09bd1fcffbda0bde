import datetime
import unittest

import asab

from webauthnrp import RelyingParty
from webauthnrp.models import (
	AttestationConveyancePreference,
	CounterRegressionPolicy,
	CredentialAlgorithm,
	ResidentKeyRequirement,
	UserVerificationRequirement,
)


class RelyingPartyConfigTestCase(unittest.TestCase):

	def setUp(self):
		self.OriginalConfig = dict(asab.Config["webauthn"])


	def tearDown(self):
		asab.Config.remove_section("webauthn")
		asab.Config.read_dict({"webauthn": self.OriginalConfig})


	def _configure(self, **values):
		asab.Config.read_dict({"webauthn": values})


	def test_from_config(self):
		self._configure(
			origin="https://auth.example.com https://login.example.com",
			challenge_timeout="2 m",
			attestation="direct",
			user_verification="required",
			algorithms="-257 -7 -8",
			counter_regression="flag",
			credential_properties="no",
		)
		relying_party = RelyingParty.from_config()
		self.assertEqual(relying_party.Id, "auth.example.com")
		self.assertEqual(relying_party.Name, "WebAuthn RP")
		self.assertEqual(relying_party.Origins, {"https://auth.example.com", "https://login.example.com"})
		self.assertEqual(relying_party.Timeout, datetime.timedelta(minutes=2))
		self.assertEqual(relying_party.ChallengeLength, 32)
		self.assertEqual(relying_party.Attestation, AttestationConveyancePreference.DIRECT)
		self.assertEqual(relying_party.UserVerification, UserVerificationRequirement.REQUIRED)
		self.assertEqual(relying_party.ResidentKey, ResidentKeyRequirement.PREFERRED)
		self.assertIsNone(relying_party.AuthenticatorAttachment)
		self.assertEqual(
			relying_party.Algorithms,
			(CredentialAlgorithm.RS256, CredentialAlgorithm.ES256, CredentialAlgorithm.EdDSA)
		)
		self.assertEqual(relying_party.CounterRegressionPolicy, CounterRegressionPolicy.FLAG)
		self.assertFalse(relying_party.CredentialProperties)


	def test_default_origin(self):
		self._configure(relying_party_id="example.com")
		relying_party = RelyingParty.from_config()
		self.assertEqual(relying_party.Origins, {"https://example.com"})
		self.assertTrue(relying_party.is_allowed_origin("https://example.com"))
		self.assertFalse(relying_party.is_allowed_origin("https://example.com.evil.example"))


	def test_missing_identity(self):
		with self.assertRaises(ValueError):
			RelyingParty.from_config()


	def test_invalid_values(self):
		for key, value in (
			("attestation", "always"),
			("counter_regression", "ignore"),
			("algorithms", "-7 -12345"),
			("algorithms", "ES256"),
			("challenge_length", "8"),
		):
			with self.subTest(key=key, value=value):
				self.tearDown()
				self._configure(relying_party_id="example.com", **{key: value})
				with self.assertRaises(ValueError):
					RelyingParty.from_config()
