"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import Request

from cellwall.repository.result_repository import ResultRepository
from cellwall.utils.config import get_settings


def get_result_repository(request: Request) -> ResultRepository:
    repository = getattr(request.app.state, "result_repository", None)
    if repository is None:
        repository = ResultRepository(settings=get_settings())
        request.app.state.result_repository = repository
    return repository
