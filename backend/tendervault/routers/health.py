from __future__ import annotations

from fastapi import APIRouter

from .. import __version__
from ..settings import settings

router = APIRouter(tags=["health"])


def _health():
    return {
        "status": "ok",
        "version": __version__,
        "environment": settings.normalized_environment,
    }


@router.get("/")
def root():
    return _health()


@router.get("/health")
def health():
    return _health()
