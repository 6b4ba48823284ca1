from typing import Annotated, Optional

from fastapi import APIRouter, Depends

from api.zone_routes import RevealResponse
from core.deps import get_optional_owner, get_zone_service
from services.zone_service import ZoneService

router = APIRouter()


# Open a shared memory by link. No PIN and no device id needed:
# holding the token is the whole credential.
@router.get("/{token}", response_model=RevealResponse)
def open_shared_zone(
    token: str,
    service: Annotated[ZoneService, Depends(get_zone_service)],
    caller_id: Annotated[Optional[str], Depends(get_optional_owner)],
):
    reveal = service.reveal_shared(token, caller_id=caller_id)
    return RevealResponse.from_reveal(reveal, caller_id)
