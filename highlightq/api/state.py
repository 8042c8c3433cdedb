"""Shared services for the API process, built once by create_app()"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from highlightq.classification.runtime import ProviderRuntime
from highlightq.gateway.boundary import BoundaryGateway
from highlightq.gateway.messages import MessageRouter
from highlightq.storage.kv import KeyValueStore


@dataclass
class ApiServices:
    store: KeyValueStore
    runtime: ProviderRuntime
    gateway: BoundaryGateway
    router: MessageRouter


def get_services(request: Request) -> ApiServices:
    return request.app.state.services
