from .registration import RegistrationCeremony
from .authentication import AuthenticationCeremony

__all__ = [
	"RegistrationCeremony",
	"AuthenticationCeremony",
]
