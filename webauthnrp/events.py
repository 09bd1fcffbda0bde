class EventTypes:
	WEBAUTHN_CREDENTIAL_CREATED = "webauthn_credential_created"
	WEBAUTHN_CREDENTIAL_UPDATED = "webauthn_credential_updated"
	WEBAUTHN_CHALLENGE_CREATED = "webauthn_challenge_created"
	WEBAUTHN_USER_ENTITY_CREATED = "webauthn_user_entity_created"
	WEBAUTHN_USER_ENTITY_UPDATED = "webauthn_user_entity_updated"
