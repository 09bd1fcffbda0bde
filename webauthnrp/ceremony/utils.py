import hashlib
import logging

import webauthn.helpers
import webauthn.helpers.exceptions

from ..exceptions import (
	ChallengeMismatchError,
	DecodeError,
	OriginMismatchError,
	RpIdMismatchError,
	TypeMismatchError,
)
from ..models.binary import BinaryIdentifier
from ..models.credential import CollectedClientData, CredentialEnvelope

#

L = logging.getLogger(__name__)

#


def verify_client_data(
	client_data_json: BinaryIdentifier,
	expected_type: str,
	expected_challenge: BinaryIdentifier,
	relying_party,
) -> CollectedClientData:
	"""
	Check ceremony type, challenge and origin of the collected client data.

	https://www.w3.org/TR/webauthn-3/#sctn-registering-a-new-credential (steps 7 to 9)
	"""
	client_data = CollectedClientData.parse(client_data_json)

	if client_data.Type != expected_type:
		raise TypeMismatchError(expected_type, client_data.Type)

	if client_data.Challenge != expected_challenge:
		raise ChallengeMismatchError()

	if not relying_party.is_allowed_origin(client_data.Origin):
		raise OriginMismatchError(client_data.Origin)

	if client_data.TopOrigin is not None and not relying_party.is_allowed_origin(client_data.TopOrigin):
		raise OriginMismatchError(client_data.TopOrigin)

	return client_data


def effective_rp_id(rp_id: str, options, envelope: CredentialEnvelope) -> str:
	"""
	Return the RP ID the authenticator data must be scoped to.

	When the FIDO AppID extension has been requested and the client reports it was used,
	the assertion is scoped to the AppID instead of the RP ID.
	"""
	appid_input = options.Extensions.get("appid")
	if appid_input is None:
		return rp_id
	appid_output = envelope.ClientExtensionResults.get("appid")
	if appid_output is not None and appid_output.Used:
		return appid_input.AppId
	return rp_id


def verify_rp_id_hash(rp_id_hash: bytes, rp_id: str):
	if rp_id_hash != hashlib.sha256(rp_id.encode("utf-8")).digest():
		raise RpIdMismatchError("Authenticator data is not scoped to RP ID {!r}".format(rp_id))


def parse_attestation_object(attestation_object: BinaryIdentifier):
	"""
	Decode the CBOR attestation object into a py_webauthn AttestationObject
	"""
	try:
		return webauthn.helpers.parse_attestation_object(attestation_object.to_bytes())
	except (webauthn.helpers.exceptions.WebAuthnException, ValueError, KeyError, TypeError, IndexError) as e:
		raise DecodeError("Malformed attestation object ({})".format(e), field="response.attestationObject") from e


def parse_authenticator_data(authenticator_data: BinaryIdentifier):
	"""
	Decode authenticator data into a py_webauthn AuthenticatorData
	"""
	try:
		return webauthn.helpers.parse_authenticator_data(authenticator_data.to_bytes())
	except (webauthn.helpers.exceptions.WebAuthnException, ValueError, KeyError, TypeError, IndexError) as e:
		raise DecodeError("Malformed authenticator data ({})".format(e), field="response.authenticatorData") from e

