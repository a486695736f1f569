import jwt
from clinica.core.config import settings

def decode_access_token(token: str) -> dict:
    """
    Verify an access token issued by the hosted auth provider.

    Raises jwt.PyJWTError when the signature, expiry or audience is invalid.
    """
    return jwt.decode(
        token,
        settings.SUPABASE_JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
        audience=settings.JWT_AUDIENCE,
    )

def mask_email(email: str) -> str:
    return email[:3] + "***"
