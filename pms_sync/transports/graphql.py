"""
GraphQL transport for PMS vendors exposing a single query endpoint
"""

import json
from typing import Any, Dict, Optional

from pms_sync.contracts import IntegrationError
from pms_sync.transports.rest import DEFAULT_TIMEOUT, RESTClient


class GraphQLClient:
    """
    POSTs ``{query, variables}`` to one endpoint and unwraps ``data``.

    Any entry in ``errors`` fails the call, even when partial ``data`` came
    back. Calls are not retried.
    """

    def __init__(
        self,
        endpoint: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        service_name: str = "graphql",
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        # Endpoint is passed as an absolute URL per call so no trailing slash is appended
        self.http = RESTClient(
            "",
            headers={"Content-Type": "application/json", **(headers or {})},
            timeout=timeout,
            service_name=service_name,
        )
        self.logger = self.http.logger

    async def aclose(self) -> None:
        await self.http.aclose()

    async def query(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        response = await self.http.send_once(
            "POST",
            self.endpoint,
            json={"query": query, "variables": variables or {}},
            timeout=timeout if timeout is not None else self.timeout,
        )

        try:
            result = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            details: Dict[str, Any] = {"http_status": response.status_code}
            if not response.is_success:
                # Gateway pages and proxies answer errors in HTML
                details["http_code"] = f"HTTP_{response.status_code}"
            raise IntegrationError(
                f"GraphQL response is not valid JSON (HTTP {response.status_code})",
                status_code=response.status_code if not response.is_success else 502,
                code="INVALID_RESPONSE",
                cause=e,
                details=details,
            ) from e

        if not isinstance(result, dict):
            raise IntegrationError(
                "GraphQL response is not an object",
                status_code=response.status_code,
                code="INVALID_RESPONSE",
            )

        errors = result.get("errors")
        if errors:
            # Some servers send a single error object or a bare string
            if isinstance(errors, dict):
                errors = [errors]
            elif not isinstance(errors, list):
                errors = [{"message": str(errors)}]
            first = errors[0] if isinstance(errors[0], dict) else {"message": str(errors[0])}
            self.logger.warning(
                "graphql_error",
                message=first.get("message"),
                error_count=len(errors),
            )
            raise IntegrationError(
                f"GraphQL error: {first.get('message')}",
                status_code=response.status_code,
                code="GRAPHQL_ERROR",
                details={"errors": errors},
            )

        data = result.get("data")
        if not data:
            raise IntegrationError(
                "GraphQL response missing data",
                status_code=response.status_code,
                code="INVALID_RESPONSE",
            )
        return data

    async def mutate(
        self,
        mutation: str,
        variables: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        return await self.query(mutation, variables, timeout)
