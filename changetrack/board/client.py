"""
Transports used by the board reconciler to reach the lifecycle store.

`HttpChangeClient` talks to the REST API with `requests` (any object with
the `requests.Session.request` signature works, e.g. a FastAPI TestClient).
`LocalChangeClient` calls the store in-process for embedding and scripts.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Union

import pydantic
import requests

from changetrack.core.database import Database
from changetrack.core.errors import StorageFailure, ValidationError, error_from_payload
from changetrack.crud.change import change_crud
from changetrack.models.change import Status
from changetrack.schemas import ChangeOut
from changetrack.services.lifecycle import LifecycleStore

logger = logging.getLogger(__name__)


def _parse_change(payload: Any) -> ChangeOut:
    # unknown status symbols are a hard error, never a silent default
    try:
        return ChangeOut.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(f"unrecognized change payload: {e.errors()[0].get('msg')}")


class HttpChangeClient:
    def __init__(self, base_url: str = "", token: Optional[str] = None,
                 session: Any = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        h = {"Content-Type": "application/json"}
        if self.token:
            h["Authorization"] = f"Bearer {self.token}"
        return h

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            r = self.session.request(method, url, json=body, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise StorageFailure("Change service unreachable") from e

        if r.status_code >= 400:
            try:
                payload = r.json()
            except ValueError:
                payload = {}
            if isinstance(payload, dict) and "kind" in payload:
                raise error_from_payload(payload)
            if r.status_code in (401, 403):
                raise ValidationError(f"actor not authorised ({r.status_code})")
            raise StorageFailure(f"unexpected response {r.status_code}")
        return r.json()

    def list_changes(self) -> List[ChangeOut]:
        return [_parse_change(c) for c in self._request("GET", "/api/changes")]

    def transition(self, change_id: str, status: Union[str, Status], comment: Optional[str] = None) -> ChangeOut:
        body: Dict[str, Any] = {"status": Status(status).value}
        if comment is not None:
            body["comment"] = comment
        return _parse_change(self._request("PATCH", f"/api/changes/{change_id}/status", body))


class LocalChangeClient:
    def __init__(self, database: Database, store: LifecycleStore, actor_id: str):
        self._database = database
        self._store = store
        self.actor_id = actor_id

    def list_changes(self) -> List[ChangeOut]:
        with self._database.session() as db:
            return [ChangeOut.model_validate(c) for c in change_crud.get_changes(db)]

    def transition(self, change_id: str, status: Union[str, Status], comment: Optional[str] = None) -> ChangeOut:
        return ChangeOut.model_validate(self._store.transition(change_id, status, self.actor_id, comment))
