from .abc import ChallengeStoreABC, CredentialRepositoryABC, UserEntityRepositoryABC
from .inmemory import InMemoryChallengeStore, InMemoryCredentialRepository, InMemoryUserEntityRepository
from .mongodb import MongoDBChallengeStore, MongoDBCredentialRepository, MongoDBUserEntityRepository

__all__ = [
	"ChallengeStoreABC",
	"CredentialRepositoryABC",
	"UserEntityRepositoryABC",
	"InMemoryChallengeStore",
	"InMemoryCredentialRepository",
	"InMemoryUserEntityRepository",
	"MongoDBChallengeStore",
	"MongoDBCredentialRepository",
	"MongoDBUserEntityRepository",
]
