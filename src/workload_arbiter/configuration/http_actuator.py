"""
HttpActuator -- wraps a privileged helper service as an Actuator.

The arbiter itself never needs elevation. A small helper running with the
rights to touch the registry, services and processes exposes:

  POST {base_url}/config/read        {"domain", "key"}
  POST {base_url}/config/write       {"domain", "key", "value"}
  POST {base_url}/services/state     {"name"}
  POST {base_url}/services/set       {"name", "enabled"}
  POST {base_url}/companions/running {"app"}
  POST {base_url}/companions/launch  {"app"}
  POST {base_url}/companions/stop    {"app"}

Each answers {"ok": bool, "value": any, "error": str}. Transport errors,
timeouts and non-2xx answers come back as a failed ActuatorResult; nothing
here raises into the applier.
"""

import logging
from typing import Any

import httpx

from workload_arbiter.security.validators import validate_url

from .actuator import ActuatorResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0
MAX_RETRIES = 1
MAX_RESPONSE_BYTES = 1_000_000


class HttpActuator:
    """
    Usage:
        actuator = HttpActuator("http://127.0.0.1:8765", api_key="secret")
        applier = ConfigurationApplier(actuator, apply_log)
        ...
        await actuator.aclose()
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
        logger: logging.Logger | None = None,
    ):
        # The helper normally listens on loopback
        self._base_url = validate_url(base_url, "base_url", allow_private=True).rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._log = logger or logging.getLogger(__name__)
        self._request_count = 0

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def request_count(self) -> int:
        return self._request_count

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _post(self, endpoint: str, payload: dict) -> ActuatorResult:
        url = f"{self._base_url}/{endpoint.lstrip('/')}"
        last_error = ""

        for attempt in range(MAX_RETRIES + 1):
            try:
                response = await self._client.post(
                    url, json=payload, headers=self._headers(), timeout=self._timeout
                )
                response.raise_for_status()
                if len(response.content) > MAX_RESPONSE_BYTES:
                    return ActuatorResult.failure(
                        f"response from {endpoint} exceeds {MAX_RESPONSE_BYTES} byte limit"
                    )
                self._request_count += 1
                data = response.json()
            except httpx.TimeoutException:
                last_error = f"timeout on {endpoint}"
                self._log.warning(
                    f"[HttpActuator] Timeout on {endpoint} "
                    f"(attempt {attempt + 1}/{MAX_RETRIES + 1})"
                )
                continue
            except httpx.HTTPStatusError as e:
                self._log.error(
                    f"[HttpActuator] HTTP {e.response.status_code} from {url}: "
                    f"{e.response.text[:200]}"
                )
                return ActuatorResult.failure(f"HTTP {e.response.status_code} from {endpoint}")
            except httpx.HTTPError as e:
                self._log.error(f"[HttpActuator] Request to {url} failed: {e}")
                return ActuatorResult.failure(f"connection failed: {e}")
            except ValueError as e:
                return ActuatorResult.failure(f"malformed response from {endpoint}: {e}")
            return _to_result(data)

        return ActuatorResult.failure(
            f"{last_error} after {MAX_RETRIES + 1} attempts"
        )

    async def read_config_value(self, domain: str, key: str) -> ActuatorResult:
        return await self._post("config/read", {"domain": domain, "key": key})

    async def write_config_value(self, domain: str, key: str, value: Any) -> ActuatorResult:
        return await self._post("config/write", {"domain": domain, "key": key, "value": value})

    async def get_service_state(self, name: str) -> ActuatorResult:
        return await self._post("services/state", {"name": name})

    async def set_service_state(self, name: str, enabled: bool) -> ActuatorResult:
        return await self._post("services/set", {"name": name, "enabled": enabled})

    async def companion_running(self, app: str) -> ActuatorResult:
        return await self._post("companions/running", {"app": app})

    async def launch_companion(self, app: str) -> ActuatorResult:
        return await self._post("companions/launch", {"app": app})

    async def stop_companion(self, app: str) -> ActuatorResult:
        return await self._post("companions/stop", {"app": app})

    async def health_check(self) -> bool:
        try:
            response = await self._client.get(
                f"{self._base_url}/health", headers=self._headers(), timeout=self._timeout
            )
        except httpx.HTTPError as e:
            self._log.debug(f"[HttpActuator] Health check failed: {e}")
            return False
        return response.status_code == 200

    async def aclose(self) -> None:
        await self._client.aclose()


def _to_result(data: Any) -> ActuatorResult:
    if not isinstance(data, dict):
        return ActuatorResult.failure("response is not a JSON object")
    if not data.get("ok", False):
        return ActuatorResult.failure(str(data.get("error") or "helper reported failure"))
    return ActuatorResult(ok=True, value=data.get("value"))
