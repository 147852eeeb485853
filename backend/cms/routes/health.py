from fastapi import APIRouter, Depends

from cms.core.access import PUBLIC
from cms.core.dependencies import require
from cms.utils.clock import utcnow

router = APIRouter(tags=["Health"])


@router.get("/health", dependencies=[Depends(require(PUBLIC))])
def health():
    return {"status": "ok", "timestamp": utcnow().isoformat()}
