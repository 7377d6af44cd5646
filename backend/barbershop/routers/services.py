from fastapi import APIRouter

from ..schemas.slots import ServiceRead
from ..services.catalog import list_services

router = APIRouter(prefix="/services", tags=["services"])


@router.get("/", response_model=list[ServiceRead])
def get_services():
    return [ServiceRead.model_validate(s) for s in list_services()]
