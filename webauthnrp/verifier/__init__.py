from .abc import AttestationVerifierABC, AssertionVerifierABC
from .pywebauthn import PyWebAuthnAttestationVerifier, PyWebAuthnAssertionVerifier

__all__ = [
	"AttestationVerifierABC",
	"AssertionVerifierABC",
	"PyWebAuthnAttestationVerifier",
	"PyWebAuthnAssertionVerifier",
]
