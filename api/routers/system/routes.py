from fastapi import APIRouter, Request
from scalar_fastapi import get_scalar_api_reference

router = APIRouter()


@router.get("/check-health", include_in_schema=False)
def check_health():
    return {"ok": True}


@router.get("/scalar", include_in_schema=False)
def get_scalar(request: Request):
    app = request.app

    return get_scalar_api_reference(
        title=app.title,
        openapi_url=app.openapi_url,
    )
