"""REST client for dotfile metadata documents on a remote."""

from typing import Any, Dict, List, NamedTuple, Optional

import httpx

from .exceptions import RemoteUnavailableError

DOTFILE_SCHEMA = "data/abstraction/dotfile"
CLI_FEATURE = "client/app/dotctx"
USER_AGENT = "dotctx-cli"


class RemoteDotfile(NamedTuple):
    """A dotfile document as stored by the metadata service."""

    doc_id: Optional[str]
    local_path: str
    repo_path: str
    type: str = "file"
    priority: int = 0

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "RemoteDotfile":
        data = document.get("data", document)
        doc_id = document.get("id")
        try:
            priority = int(data.get("priority") or 0)
        except (TypeError, ValueError):
            priority = 0
        return cls(
            doc_id=str(doc_id) if doc_id is not None else None,
            local_path=data.get("localPath", ""),
            repo_path=str(data.get("repoPath", "")).strip("/"),
            type=data.get("type", "file"),
            priority=priority,
        )

    def to_data(self) -> Dict[str, Any]:
        return {
            "localPath": self.local_path,
            "repoPath": self.repo_path,
            "type": self.type,
            "priority": self.priority,
        }


def _doc_ref(doc_id: str) -> Any:
    return int(doc_id) if doc_id.isdigit() else doc_id


def _payload(body: Any) -> Any:
    if isinstance(body, dict) and "payload" in body:
        return body["payload"]
    return body


class MetadataClient:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"), headers=headers, transport=transport
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "MetadataClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RemoteUnavailableError(
                f"{method} {url} failed with HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise RemoteUnavailableError(f"Cannot reach remote: {e}") from e
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteUnavailableError(f"Invalid JSON from {url}") from e

    def _get_dotfiles(self, container: str) -> List[RemoteDotfile]:
        body = self._request(
            "GET", f"{container}/documents", params={"featureArray": DOTFILE_SCHEMA}
        )
        documents = _payload(body) or []
        if not isinstance(documents, list):
            raise RemoteUnavailableError(f"Unexpected document list from {container}")
        return [
            RemoteDotfile.from_document(doc)
            for doc in documents
            if isinstance(doc, dict)
            and doc.get("schema", DOTFILE_SCHEMA) == DOTFILE_SCHEMA
        ]

    def get_dotfiles_by_context(self, context_id: str) -> List[RemoteDotfile]:
        return self._get_dotfiles(f"/contexts/{context_id}")

    def get_dotfiles_by_workspace(self, workspace: str) -> List[RemoteDotfile]:
        return self._get_dotfiles(f"/workspaces/{workspace}")

    def create_dotfile(
        self,
        workspace: str,
        dotfile: RemoteDotfile,
        context_spec: Optional[str] = None,
    ) -> Optional[str]:
        """Create a dotfile document and return its id, if the server reports one."""
        payload: Dict[str, Any] = {
            "documents": [{"schema": DOTFILE_SCHEMA, "data": dotfile.to_data()}],
            "featureArray": [DOTFILE_SCHEMA, CLI_FEATURE],
        }
        if context_spec:
            payload["contextSpec"] = context_spec
        created = _payload(
            self._request("POST", f"/workspaces/{workspace}/documents", json=payload)
        )
        if isinstance(created, list) and created:
            created = created[0]
        if isinstance(created, dict):
            created = created.get("id")
        return str(created) if created is not None else None

    def remove_dotfile(self, context_id: str, doc_id: str) -> None:
        """Remove a document from one context; the document itself survives."""
        self._request(
            "DELETE",
            f"/contexts/{context_id}/documents/remove",
            json=[_doc_ref(doc_id)],
        )

    def delete_dotfile(self, workspace: str, doc_id: str) -> None:
        self._request(
            "DELETE", f"/workspaces/{workspace}/documents", json=[_doc_ref(doc_id)]
        )

    def init_dotfiles(self, workspace: str) -> Dict[str, Any]:
        body = self._request("POST", f"/workspaces/{workspace}/dotfiles/init", json={})
        if isinstance(body, dict) and body.get("status", "success") != "success":
            raise RemoteUnavailableError(
                body.get("message") or "Failed to initialize repository"
            )
        return body or {}

    def dotfiles_status(self, workspace: str) -> Dict[str, Any]:
        body = self._request("GET", f"/workspaces/{workspace}/dotfiles/status")
        status = _payload(body)
        return status if isinstance(status, dict) else {}
