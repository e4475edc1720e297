"""Account roles shared by the API and the client."""

ROLE_MEMBER = "member"
ROLE_ADMIN = "admin"

ROLES = (ROLE_MEMBER, ROLE_ADMIN)
