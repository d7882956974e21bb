import uuid

from fastapi import HTTPException, Request, status

from deskwise.infra.org_context import set_current_org_id
from deskwise.settings import settings

ORG_HEADER = "X-Org-Id"


async def require_org_context(request: Request) -> uuid.UUID:
    """Resolve the caller's organization from ``X-Org-Id``.

    Without the header, dev and test deployments fall back to ``DEFAULT_ORG_ID``;
    production rejects the request.
    """
    raw = request.headers.get(ORG_HEADER)
    if raw:
        try:
            org_id = uuid.UUID(raw.strip())
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid X-Org-Id header"
            ) from exc
    elif settings.testing or settings.app_env == "dev":
        org_id = settings.default_org_id
    else:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    request.state.current_org_id = org_id
    set_current_org_id(org_id)
    return org_id
