from __future__ import annotations

from typing import cast

from fastapi import Depends, Request

from tutorly.core.container import AppContainer
from tutorly.services.dashboard_service import DashboardService


def get_container(request: Request) -> AppContainer:
    return cast(AppContainer, request.app.state.container)


def get_dashboard(container: AppContainer = Depends(get_container)) -> DashboardService:
    return container.dashboard
