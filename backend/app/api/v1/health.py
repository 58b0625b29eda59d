from fastapi import APIRouter, Request

from app.api.response import envelope
from app.services import infra_service

router = APIRouter(tags=['ops'])


@router.get('/health')
def health(request: Request) -> dict:
    return envelope(request, {'status': 'ok'})


@router.get('/health/readiness')
def readiness(request: Request) -> dict:
    db_ok = infra_service.db_connected()
    structure_ok = infra_service.payment_log_structure_ready() if db_ok else False
    return envelope(
        request,
        {
            'status': 'ready' if db_ok and structure_ok else 'degraded',
            'dependencies': {
                'database': db_ok,
                'payment_log_structure': structure_ok,
            },
        },
    )
