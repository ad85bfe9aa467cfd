import secrets

from fastapi import Header, HTTPException, status

from placement_backup.config import settings

async def verify_admin_key(
    x_api_key: str = Header(..., alias="X-API-Key")
) -> str:
    if not settings.ADMIN_API_KEY:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Admin API key not configured")

    if not secrets.compare_digest(x_api_key, settings.ADMIN_API_KEY):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")

    return x_api_key
