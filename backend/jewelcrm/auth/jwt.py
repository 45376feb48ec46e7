"""Bearer token decoding.

Tokens are issued by the identity service. This service only verifies
them and reads the subject:

  - sub:   user ID
  - type:  "access" (refresh tokens are rejected)
  - exp:   expiry timestamp
"""

from jose import JWTError, jwt

from jewelcrm.config import settings

ALGORITHM = settings.jwt_algorithm


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Returns empty dict on failure."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return {}
