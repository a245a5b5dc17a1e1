"""Health check endpoints"""
from fastapi import APIRouter

from devproxy.core.config import get_config

router = APIRouter()


@router.get('/health')
async def health():
    """Basic health check endpoint"""
    interceptor = get_config().interceptor

    return {
        'status': 'ok',
        'interceptor': {
            'enabled': interceptor.enabled,
            'crd_path': interceptor.crd_path,
        }
    }
