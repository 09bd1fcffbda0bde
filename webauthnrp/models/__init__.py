from .binary import BinaryIdentifier, generate_challenge
from .const import (
	AttestationConveyancePreference,
	AuthenticatorAttachment,
	AuthenticatorTransport,
	ClientDataType,
	CounterRegressionPolicy,
	CredentialAlgorithm,
	PublicKeyCredentialHint,
	PublicKeyCredentialType,
	ResidentKeyRequirement,
	UserVerificationRequirement,
)
from .entities import (
	AuthenticatorSelectionCriteria,
	CredentialDescriptor,
	CredentialParameters,
	RpEntity,
	UserEntity,
)
from .extensions import (
	AppIdExcludeInput,
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
from .options import CreationOptions, RequestOptions, create_creation_options, create_request_options
from .credential import AssertionResponse, AttestationResponse, CollectedClientData, CredentialEnvelope
from .record import CredentialRecord

__all__ = [
	"BinaryIdentifier",
	"generate_challenge",
	"AttestationConveyancePreference",
	"AuthenticatorAttachment",
	"AuthenticatorTransport",
	"ClientDataType",
	"CounterRegressionPolicy",
	"CredentialAlgorithm",
	"PublicKeyCredentialHint",
	"PublicKeyCredentialType",
	"ResidentKeyRequirement",
	"UserVerificationRequirement",
	"AuthenticatorSelectionCriteria",
	"CredentialDescriptor",
	"CredentialParameters",
	"RpEntity",
	"UserEntity",
	"AppIdExcludeInput",
	"AppIdInput",
	"AppIdOutput",
	"CredentialPropertiesInput",
	"CredentialPropertiesOutput",
	"ExtensionCodecABC",
	"ExtensionInputs",
	"ExtensionOutputs",
	"ExtensionRegistry",
	"OpaqueExtension",
	"CreationOptions",
	"RequestOptions",
	"create_creation_options",
	"create_request_options",
	"AssertionResponse",
	"AttestationResponse",
	"CollectedClientData",
	"CredentialEnvelope",
	"CredentialRecord",
]
