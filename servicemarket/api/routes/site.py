from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from servicemarket.api.deps import Services, get_services
from servicemarket.api.schemas import to_public
from servicemarket.lifecycle.constants import DUBAI_LOCALITIES

router = APIRouter(prefix="/site", tags=["site"])


@router.get("/settings", response_model=dict)
def public_settings(services: Services = Depends(get_services)):
    return to_public(services.site.get_settings())


@router.get("/categories", response_model=List[str])
def categories(services: Services = Depends(get_services)):
    return services.site.category_names()


@router.get("/localities", response_model=List[str])
def localities():
    return DUBAI_LOCALITIES
