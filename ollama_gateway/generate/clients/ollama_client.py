# Synchronous client for the Ollama HTTP API (non-streaming calls).

import logging
from typing import Any, Dict, List, Optional

import requests

from ...errors import BackendUnreachable, DecodeError, UpstreamError
from ...relay.decoder import parse_record
from ...settings import RelayConfig
from ..types import GenerationRequest, GenerationResult

logger = logging.getLogger(__name__)


class OllamaClient:
    def __init__(self, config: RelayConfig, timeout: float = 60.0, session: Optional[requests.Session] = None):
        self.config = config
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    def close(self) -> None:
        self.session.close()

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = self.config.url(path)
        try:
            resp = self.session.request(
                method, url, timeout=(self.config.connect_timeout, self.timeout), **kwargs
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.error("Backend unreachable at %s: %s", url, e)
            raise BackendUnreachable(f"Failed to reach backend: {e}") from e
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            detail = resp.text.strip() or resp.reason
            raise UpstreamError(f"Backend returned HTTP {resp.status_code}: {detail}") from e
        return resp

    def _json(self, resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise DecodeError(f"Backend body is not JSON: {e}", raw=resp.text[:200]) from e

    def generate(self, request: GenerationRequest) -> GenerationResult:
        resp = self._request("POST", "/api/generate", json=request.to_payload(stream=False))
        data = self._json(resp)
        chunk = parse_record(data, raw=resp.text[:200])
        return GenerationResult(
            text=chunk.text,
            model=data.get("model", request.model),
            done=chunk.done,
        )

    def list_models(self) -> List[Dict[str, Any]]:
        data = self._json(self._request("GET", "/api/tags"))
        models = data.get("models") if isinstance(data, dict) else None
        return models or []

    def get_model_info(self, name: str) -> Optional[Dict[str, Any]]:
        for m in self.list_models():
            if m.get("name") == name:
                return m
        return None

    def check_health(self) -> bool:
        try:
            self._request("GET", "/")
        except (BackendUnreachable, UpstreamError):
            return False
        return True
