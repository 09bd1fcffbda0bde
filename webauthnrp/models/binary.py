import base64
import binascii
import functools
import re
import secrets

from ..exceptions import DecodeError


_BASE64URL_RE = re.compile(r"^[A-Za-z0-9_-]*$")

# Below this, a challenge is guessable in practice
MIN_CHALLENGE_LENGTH = 16
DEFAULT_CHALLENGE_LENGTH = 32


@functools.total_ordering
class BinaryIdentifier:
	"""
	Immutable binary value that travels over JSON as unpadded base64url text.

	Used for credential IDs, challenges, user handles, signatures and key material.
	Equality, ordering and hashing work on the raw bytes.
	Text input is validated and canonicalized once, when it is parsed.
	"""

	__slots__ = ("_bytes",)

	def __init__(self, value: bytes):
		if not isinstance(value, (bytes, bytearray, memoryview)):
			raise TypeError("BinaryIdentifier requires bytes, got {}".format(type(value).__name__))
		self._bytes = bytes(value)


	@classmethod
	def from_base64(cls, text: str) -> "BinaryIdentifier":
		"""
		Parse unpadded base64url text.

		Padding characters, characters outside the URL-safe alphabet and non-canonical
		encodings (stray trailing bits) are rejected with DecodeError.
		"""
		if not isinstance(text, str):
			raise DecodeError("Expected base64url string, got {}".format(type(text).__name__))
		if _BASE64URL_RE.match(text) is None:
			raise DecodeError("Invalid base64url value")
		if len(text) % 4 == 1:
			raise DecodeError("Invalid base64url length")

		try:
			value = base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))
		except (binascii.Error, ValueError) as e:
			raise DecodeError("Invalid base64url value ({})".format(e))

		result = cls(value)
		if result.to_base64() != text:
			raise DecodeError("Non-canonical base64url value")
		return result


	@classmethod
	def from_bytes(cls, value: bytes) -> "BinaryIdentifier":
		return cls(value)


	@classmethod
	def random(cls, length: int) -> "BinaryIdentifier":
		return cls(secrets.token_bytes(length))


	def to_base64(self) -> str:
		return base64.urlsafe_b64encode(self._bytes).decode("ascii").rstrip("=")


	def to_bytes(self) -> bytes:
		return self._bytes


	def __bytes__(self):
		return self._bytes


	def __len__(self):
		return len(self._bytes)


	def __eq__(self, other):
		if not isinstance(other, BinaryIdentifier):
			return NotImplemented
		return self._bytes == other._bytes


	def __lt__(self, other):
		if not isinstance(other, BinaryIdentifier):
			return NotImplemented
		return self._bytes < other._bytes


	def __hash__(self):
		return hash(self._bytes)


	def __str__(self):
		return self.to_base64()


	def __repr__(self):
		return "BinaryIdentifier({!r})".format(self.to_base64())


def generate_challenge(length: int = DEFAULT_CHALLENGE_LENGTH) -> BinaryIdentifier:
	"""
	Create a fresh random challenge from a cryptographically secure source.

	See: https://www.w3.org/TR/webauthn-3/#sctn-cryptographic-challenges
	"""
	if length < MIN_CHALLENGE_LENGTH:
		raise ValueError("Challenge must be at least {} bytes long".format(MIN_CHALLENGE_LENGTH))
	return BinaryIdentifier.random(length)
