"""
Client for hosted Supabase edge functions.
"""

from typing import Any, Dict, Optional

import httpx

from previz.core.exceptions import EdgeFunctionError
from previz.core.logging_config import get_logger
from previz.llm.api_clients import raise_for_service

logger = get_logger("llm.edge_functions")


class EdgeFunctionClient:
    """Invokes ``POST {functions_url}/<name>`` with the project's anon key."""

    def __init__(
        self,
        functions_url: str,
        anon_key: str,
        timeout: float = 300,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.functions_url = functions_url.rstrip("/")
        self._anon_key = anon_key
        self.timeout = timeout
        self._transport = transport

    async def invoke(
        self,
        name: str,
        body: Dict[str, Any],
        access_token: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Call a function and return its JSON body.

        Edge functions report failures as ``{"error": "..."}``, sometimes
        with a 2xx status; both cases raise EdgeFunctionError with that text.
        """
        headers = {
            "Authorization": f"Bearer {access_token or self._anon_key}",
            "apikey": self._anon_key,
            "Content-Type": "application/json",
        }
        logger.debug(f"Invoking edge function: {name}")

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(f"{self.functions_url}/{name}", headers=headers, json=body)
        except httpx.HTTPError as e:
            raise EdgeFunctionError(name, f"Request failed: {e}")

        raise_for_service(response, name, EdgeFunctionError)

        try:
            data = response.json()
        except ValueError:
            raise EdgeFunctionError(name, "Edge function returned invalid JSON", response.status_code)

        if not isinstance(data, dict):
            raise EdgeFunctionError(name, "Edge function returned an unexpected payload", response.status_code)
        if data.get("error"):
            raise EdgeFunctionError(name, str(data["error"]), response.status_code)
        return data
