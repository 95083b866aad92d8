"""
SOAP/XML transport for PMS vendors with RPC-style web services
Envelope building, result extraction and fault handling
"""

import asyncio
import xml.etree.ElementTree as ET
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional

import httpx

from pms_sync.contracts import IntegrationError
from pms_sync.resilience import RetryOptions, call_with_retry
from pms_sync.transports.rest import RESTClient

SOAP_ENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
DEFAULT_SOAP_TIMEOUT = 45.0


def _local_name(tag: str) -> str:
    if "}" in tag:
        return tag.rsplit("}", 1)[1]
    return tag.split(":", 1)[-1]


def element_to_value(element: ET.Element) -> Any:
    """
    Convert an XML element to plain Python values.

    Leaf elements become their stripped text (``None`` when empty); elements
    with children become dicts keyed by local tag name, where repeated tags
    collapse into lists.
    """
    children = list(element)
    if not children:
        text = (element.text or "").strip()
        return text or None

    result: Dict[str, Any] = {}
    for child in children:
        name = _local_name(child.tag)
        value = element_to_value(child)
        if name in result:
            existing = result[name]
            if not isinstance(existing, list):
                result[name] = [existing]
            result[name].append(value)
        else:
            result[name] = value
    return result


def as_list(value: Any) -> List[Any]:
    """SOAP collections serialize a single item without a wrapping array"""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def _append_params(parent: ET.Element, prefix: str, params: Dict[str, Any]) -> None:
    for name, value in params.items():
        if value is None:
            continue
        values: Iterable[Any] = value if isinstance(value, list) else [value]
        for item in values:
            child = ET.SubElement(parent, f"{prefix}:{name}")
            if isinstance(item, dict):
                _append_params(child, prefix, item)
            else:
                child.text = _format_value(item)


class SOAPClient:
    """
    Posts operation envelopes to a SOAP endpoint over a pooled HTTP client.

    Faults surface as ``SOAP_ERROR``. Faults whose ``faultcode`` appears in
    ``retryable_faults`` go through the retry policy; all others fail on the
    first attempt.
    """

    def __init__(
        self,
        base_url: str,
        namespace: str,
        username: str,
        password: str,
        prefix: str = "prot",
        path: str = "/soap",
        timeout: float = DEFAULT_SOAP_TIMEOUT,
        retry_options: Optional[RetryOptions] = None,
        retryable_faults: Optional[Iterable[str]] = None,
        service_name: str = "soap",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.namespace = namespace
        self.prefix = prefix
        self.path = path
        self.timeout = timeout
        self.retry_options = retry_options or RetryOptions()
        self.retryable_faults: FrozenSet[str] = frozenset(retryable_faults or ())
        self._sleep = sleep
        self.http = RESTClient(
            base_url,
            headers={"Content-Type": "text/xml; charset=utf-8", "Accept": "text/xml"},
            timeout=timeout,
            auth=httpx.BasicAuth(username, password),
            service_name=service_name,
        )
        self.logger = self.http.logger

    async def aclose(self) -> None:
        await self.http.aclose()

    def build_envelope(self, operation: str, params: Optional[Dict[str, Any]] = None) -> str:
        envelope = ET.Element(
            "soap:Envelope",
            {"xmlns:soap": SOAP_ENV_NS, f"xmlns:{self.prefix}": self.namespace},
        )
        ET.SubElement(envelope, "soap:Header")
        body = ET.SubElement(envelope, "soap:Body")
        call = ET.SubElement(body, f"{self.prefix}:{operation}")
        _append_params(call, self.prefix, params or {})
        return '<?xml version="1.0" encoding="utf-8"?>' + ET.tostring(envelope, encoding="unicode")

    def parse_response(self, operation: str, text: str, status_code: int = 200) -> Any:
        """Extract ``<Operation>Response/<Operation>Result`` from a response body"""
        try:
            root = ET.fromstring(text)
        except ET.ParseError as e:
            raise IntegrationError(
                f"SOAP request failed: malformed XML response ({e})",
                status_code=502,
                code="SOAP_ERROR",
                cause=e,
            ) from e

        body = next((child for child in root if _local_name(child.tag) == "Body"), None)
        if body is None:
            raise IntegrationError(
                "SOAP request failed: response has no Body",
                status_code=502,
                code="SOAP_ERROR",
            )

        for child in body:
            name = _local_name(child.tag)
            if name == "Fault":
                self._raise_fault(operation, element_to_value(child) or {})
            if name == f"{operation}Response":
                if status_code >= 400:
                    break
                response = element_to_value(child)
                if isinstance(response, dict):
                    return response.get(f"{operation}Result")
                return None

        raise IntegrationError(
            f"SOAP request failed: no {operation}Response in body (HTTP {status_code})",
            status_code=502,
            code="SOAP_ERROR",
            details={"operation": operation, "http_status": status_code},
        )

    def _raise_fault(self, operation: str, fault: Dict[str, Any]) -> None:
        fault_code = fault.get("faultcode") or ""
        fault_string = fault.get("faultstring") or "unknown fault"
        retryable = _local_name(fault_code) in self.retryable_faults or fault_code in self.retryable_faults
        self.logger.warning(
            "soap_fault",
            operation=operation,
            fault_code=fault_code,
            retryable=retryable,
        )
        raise IntegrationError(
            f"SOAP request failed: {fault_string}",
            status_code=502,
            code="SOAP_ERROR",
            retryable=retryable,
            details={"operation": operation, "faultcode": fault_code},
        )

    async def call(self, operation: str, params: Optional[Dict[str, Any]] = None) -> Any:
        envelope = self.build_envelope(operation, params)
        headers = {"SOAPAction": f"{self.namespace}{operation}"}

        async def attempt() -> Any:
            try:
                response = await self.http.send_once(
                    "POST", self.path, content=envelope, headers=headers, timeout=self.timeout
                )
            except IntegrationError as e:
                raise IntegrationError(
                    f"SOAP request failed: {e.message}",
                    status_code=e.status_code,
                    code="SOAP_ERROR",
                    cause=e,
                    details={"operation": operation, "transport_code": e.code},
                ) from e
            return self.parse_response(operation, response.text, response.status_code)

        return await call_with_retry(
            attempt, self.retry_options, service_name=self.http.service_name, sleep=self._sleep
        )
