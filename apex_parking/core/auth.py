import hmac

from fastapi import HTTPException


def check_bearer(authorization: str | None, secret: str) -> None:
    """Raise 401 unless `authorization` carries `Bearer <secret>`. An empty secret disables the check."""
    if not secret:
        return
    expected = f"Bearer {secret}"
    if not authorization or not hmac.compare_digest(authorization.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")
