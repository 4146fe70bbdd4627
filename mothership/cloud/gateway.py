# Mothership - Arduino IoT Cloud Property Gateway
# -*- coding: utf-8 -*-
"""
 Read and publish Thing properties through the Arduino IoT Cloud REST API

 Classes:
    PropertyGateway - abstract gateway contract (live and mock implementations)
    CloudGateway    - live implementation using requests and a TokenProvider

 Functions:
    list_properties(thing_id)         - list all properties of a Thing
    read_state(thing_id)              - {variable_name or name: value} for a Thing
    publish(thing_id, key, value)     - publish one property value by key
    publish_many(thing_id, updates)   - resolve all keys, then publish in order
    publish_each(thing_id, updates)   - resolve and publish field by field

 API Reference: https://www.arduino.cc/reference/en/iot/api/
"""
import abc
import logging
from typing import Any, Dict, List, Optional

import requests

from mothership.cloud.properties import Property, PropertyIndex, properties_to_state
from mothership.cloud.token import TokenProvider
from mothership.exceptions import GatewayError, UnknownPropertyError

# Defaults
API_TIMEOUT = 10  # Time in seconds to wait for the cloud API

log = logging.getLogger(__name__)


class PropertyGateway(abc.ABC):
    """Contract shared by the live and mock gateways."""

    mocked = False

    @abc.abstractmethod
    def list_properties(self, thing_id: str) -> List[Property]:
        raise NotImplementedError

    @abc.abstractmethod
    def publish_property(self, thing_id: str, prop: Property, value: Any) -> dict:
        raise NotImplementedError

    def read_state(self, thing_id: str) -> Dict[str, Any]:
        return properties_to_state(self.list_properties(thing_id))

    def publish(self, thing_id: str, key: str, value: Any) -> dict:
        return self.publish_many(thing_id, {key: value})

    def publish_many(self, thing_id: str, updates: Dict[str, Any]) -> dict:
        """Publish several properties of one Thing.

        Every key is resolved before the first write, so an unknown key fails
        without side effects. Writes then happen in order and stop at the
        first failure; values already published stay applied.
        """
        if not updates:
            return {"ok": True}
        index = PropertyIndex(self.list_properties(thing_id))
        resolved = []
        for key, value in updates.items():
            prop = index.resolve(key)
            if prop is None:
                raise UnknownPropertyError(thing_id, key)
            resolved.append((key, prop, value))
        for key, prop, value in resolved:
            log.debug(f"[{thing_id}] publish {key}={value!r} (property {prop.id})")
            self.publish_property(thing_id, prop, value)
        return {"ok": True}

    def publish_each(self, thing_id: str, updates: Dict[str, Any]) -> dict:
        """Publish several properties of one Thing, one field at a time.

        Keys are resolved as they are reached, so an unknown key stops the
        sequence there and the fields before it stay applied.
        """
        if not updates:
            return {"ok": True}
        index = PropertyIndex(self.list_properties(thing_id))
        for key, value in updates.items():
            prop = index.resolve(key)
            if prop is None:
                raise UnknownPropertyError(thing_id, key)
            log.debug(f"[{thing_id}] publish {key}={value!r} (property {prop.id})")
            self.publish_property(thing_id, prop, value)
        return {"ok": True}


class CloudGateway(PropertyGateway):
    def __init__(self, token_provider: TokenProvider, api_base: str,
                 space_id: Optional[str] = None, timeout: float = API_TIMEOUT,
                 poolmaxsize: int = 10, session: Optional[requests.Session] = None):
        self.token_provider = token_provider
        self.api_base = api_base.rstrip("/")
        self.space_id = space_id or ""
        self.timeout = timeout
        if session is not None:
            self.session = session
        else:
            self.session = requests.Session()
            if poolmaxsize > 0:
                a = requests.adapters.HTTPAdapter(pool_maxsize=poolmaxsize)
                self.session.mount('https://', a)

    def headers(self) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self.token_provider.get_token()}"}
        if self.space_id:
            headers["X-Organization"] = self.space_id
        return headers

    def _request(self, method: str, url: str, thing_id: str, action: str, **kwargs) -> requests.Response:
        headers = self.headers()
        headers.update(kwargs.pop("headers", {}))
        log.debug(f"{method}: {url}")
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout:
            raise GatewayError(f"{action} failed ({thing_id}): timeout after {self.timeout}s", thing_id=thing_id)
        except requests.exceptions.RequestException as e:
            raise GatewayError(f"{action} failed ({thing_id}): {e}", thing_id=thing_id)
        if response.status_code == 401:
            # Token revoked or expired early - next call performs a new exchange
            self.token_provider.invalidate()
        if not response.ok:
            raise GatewayError(f"{action} failed ({thing_id}): {response.status_code} {response.text}",
                               thing_id=thing_id, status_code=response.status_code, body=response.text)
        return response

    def list_properties(self, thing_id: str) -> List[Property]:
        url = f"{self.api_base}/v2/things/{thing_id}/properties"
        response = self._request("GET", url, thing_id, "List props")
        try:
            payload = response.json()
        except ValueError:
            raise GatewayError(f"List props failed ({thing_id}): invalid JSON", thing_id=thing_id,
                               status_code=response.status_code, body=response.text)
        if not isinstance(payload, list):
            raise GatewayError(f"List props failed ({thing_id}): expected a list", thing_id=thing_id,
                               status_code=response.status_code, body=response.text)
        return [Property.from_api(p) for p in payload if isinstance(p, dict)]

    def publish_property(self, thing_id: str, prop: Property, value: Any) -> dict:
        url = f"{self.api_base}/v2/things/{thing_id}/properties/{prop.id}/publish"
        self._request("PUT", url, thing_id, f"Publish {prop.key}", json={"value": value},
                      headers={"Content-Type": "application/json"})
        return {"ok": True}
