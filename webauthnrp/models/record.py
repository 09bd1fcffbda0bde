import dataclasses
import datetime
import typing

from .binary import BinaryIdentifier
from .const import AuthenticatorTransport, CredentialAlgorithm
from .entities import CredentialDescriptor


@dataclasses.dataclass(frozen=True)
class CredentialRecord:
	"""
	Registered credential, as kept by the relying party

	https://www.w3.org/TR/webauthn-3/#credential-record

	Records are immutable. Updates produce a new record with `dataclasses.replace()`
	which is then handed to the credential repository.
	"""
	CredentialId: BinaryIdentifier
	UserEntityId: BinaryIdentifier
	# COSE_Key encoded credential public key
	PublicKey: BinaryIdentifier
	Algorithm: CredentialAlgorithm
	SignatureCount: int = 0
	Transports: typing.Tuple[AuthenticatorTransport, ...] = ()
	AttestationFormat: typing.Optional[str] = None
	AttestationObject: typing.Optional[BinaryIdentifier] = None
	AttestationClientDataJSON: typing.Optional[BinaryIdentifier] = None
	Aaguid: typing.Optional[str] = None
	UvInitialized: bool = False
	BackupEligible: bool = False
	BackupState: bool = False
	Label: typing.Optional[str] = None
	Created: typing.Optional[datetime.datetime] = None
	LastUsed: typing.Optional[datetime.datetime] = None

	def __post_init__(self):
		if self.SignatureCount < 0:
			raise ValueError("Signature count must not be negative")
		object.__setattr__(self, "Transports", tuple(self.Transports))


	def __repr__(self):
		return "<CredentialRecord id={} uid={} sc={}>".format(
			self.CredentialId, self.UserEntityId, self.SignatureCount)


	def descriptor(self) -> CredentialDescriptor:
		return CredentialDescriptor(
			Id=self.CredentialId,
			Transports=self.Transports if len(self.Transports) > 0 else None,
		)


	def serialize(self) -> dict:
		"""
		Storage representation, keyed by the raw credential ID
		"""
		return {
			"_id": self.CredentialId.to_bytes(),
			"uid": self.UserEntityId.to_bytes(),
			"pk": self.PublicKey.to_bytes(),
			"alg": int(self.Algorithm),
			"sc": self.SignatureCount,
			"tr": [str(transport) for transport in self.Transports],
			"fmt": self.AttestationFormat,
			"ao": self.AttestationObject.to_bytes() if self.AttestationObject is not None else None,
			"cd": self.AttestationClientDataJSON.to_bytes() if self.AttestationClientDataJSON is not None else None,
			"aa": self.Aaguid,
			"uvi": self.UvInitialized,
			"be": self.BackupEligible,
			"bs": self.BackupState,
			"label": self.Label,
			"cr": self.Created,
			"ll": self.LastUsed,
		}


	@classmethod
	def deserialize(cls, db_object: dict) -> "CredentialRecord":
		attestation_object = db_object.get("ao")
		client_data = db_object.get("cd")
		return cls(
			CredentialId=BinaryIdentifier(db_object["_id"]),
			UserEntityId=BinaryIdentifier(db_object["uid"]),
			PublicKey=BinaryIdentifier(db_object["pk"]),
			Algorithm=CredentialAlgorithm(db_object["alg"]),
			SignatureCount=db_object.get("sc", 0),
			Transports=tuple(
				AuthenticatorTransport(transport)
				for transport in db_object.get("tr", [])
				if transport in AuthenticatorTransport.__members__.values()
			),
			AttestationFormat=db_object.get("fmt"),
			AttestationObject=BinaryIdentifier(attestation_object) if attestation_object is not None else None,
			AttestationClientDataJSON=BinaryIdentifier(client_data) if client_data is not None else None,
			Aaguid=db_object.get("aa"),
			UvInitialized=db_object.get("uvi", False),
			BackupEligible=db_object.get("be", False),
			BackupState=db_object.get("bs", False),
			Label=db_object.get("label"),
			Created=db_object.get("cr") or db_object.get("_c"),
			LastUsed=db_object.get("ll"),
		)
