from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWTError

from station_ledger.core.config import role_list, settings
from station_ledger.core.security import decode_token
from station_ledger.db.session import SessionLocal

bearer = HTTPBearer()


def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


def current_user(creds: HTTPAuthorizationCredentials = Depends(bearer)):
    try:
        return decode_token(creds.credentials)
    except PyJWTError:
        raise HTTPException(status_code=401, detail="invalid_token")


def require_roles(*roles: str):
    allowed = {r.lower() for r in roles}

    def _dep(u=Depends(current_user)):
        if (u.get("role") or "").lower() not in allowed:
            raise HTTPException(status_code=403, detail="forbidden")
        return u

    return _dep


require_admin = require_roles("admin")
require_petty_cash_approver = require_roles(*role_list(settings.petty_cash_approver_roles))
require_loan_approver = require_roles(*role_list(settings.loan_approver_roles))
