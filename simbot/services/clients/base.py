from typing import Any, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from simbot.config import settings
from simbot.logging_config import get_logger

logger = get_logger("clients")

T = TypeVar("T", bound=BaseModel)


class ServiceError(Exception):
    """Non-2xx response or transport failure from a sibling service."""

    def __init__(self, service: str, status_code: Optional[int], detail: str):
        super().__init__(f"{service} error: {status_code} - {detail}")
        self.service = service
        self.status_code = status_code
        self.detail = detail

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class ServiceClient:
    """JSON-over-HTTP client for one sibling service."""

    service_name = "service"

    def __init__(self, base_url: str, timeout: Optional[float] = None, transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.service_timeout_seconds
        self.transport = transport

    def _request(self, method: str, path: str, json: Any = None) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.request(method, url, json=json)
        except httpx.HTTPError as e:
            logger.error(f"{self.service_name} transport error: {e}")
            raise ServiceError(self.service_name, None, str(e)) from e

        logger.debug(f"{self.service_name} {method} {path} -> {response.status_code}")

        if response.status_code >= 400:
            raise ServiceError(self.service_name, response.status_code, response.text[:500])
        if not response.content:
            raise ServiceError(self.service_name, response.status_code, "Empty response body")
        try:
            return response.json()
        except ValueError as e:
            raise ServiceError(self.service_name, response.status_code, "Invalid JSON body") from e

    def _validate(self, model: Type[T], data: Any) -> T:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"{self.service_name} returned an unexpected body: {e.error_count()} errors")
            raise ServiceError(self.service_name, 200, "Invalid response body") from e

    def _request_model(self, model: Type[T], method: str, path: str, body: Optional[BaseModel] = None) -> T:
        payload = body.model_dump(mode="json") if body is not None else None
        return self._validate(model, self._request(method, path, json=payload))

    def _request_list(self, model: Type[T], method: str, path: str) -> list:
        data = self._request(method, path)
        if not isinstance(data, list):
            raise ServiceError(self.service_name, 200, "Expected a JSON list")
        return [self._validate(model, item) for item in data]
