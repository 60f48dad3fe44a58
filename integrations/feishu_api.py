import json
import time
import uuid
import logging

from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from core.exceptions import ApiResponseError
from core.exceptions import DocumentNotFoundError
from data.models import CollaboratorEntry
from data.models import RequestContext
from utils.http_client import HttpClient


logger = logging.getLogger(__name__)

# Business error statuses come back as 4xx with a JSON body carrying the code.
JSON_ERROR_STATUSES = (400, 401, 403, 404)
NOT_FOUND_CODES = {
    "1770002",
    "1770003",
    "1061003",
    "1061007"
}
LIST_BLOCKS_PAGE_SIZE = 500


def _log_api_call(description: str, endpoint: str, **params: Any) -> None:
    """Log one outgoing open API call with its key parameters.

    Args:
        description: Human readable action.
        endpoint: API path.
        params: Parameters worth tracing.
    """

    logger.info(
        "[Lark API] %s - %s: %s",
        description,
        endpoint,
        json.dumps(params, ensure_ascii = False, default = str)
    )


class FeishuAuthClient:
    """Handle tenant access token lifecycle for one Feishu app.

    Self-built apps use the internal token endpoint. When a tenant key is
    given, the app token is exchanged for that tenant's token instead.

    Args:
        app_id: Feishu app id.
        app_secret: Feishu app secret.
        base_url: Feishu base domain.
        http_client: Shared HTTP client.
    """

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        base_url: str,
        http_client: HttpClient
    ) -> None:
        self.app_id = app_id
        self.app_secret = app_secret
        self.base_url = base_url.rstrip("/")
        self.http_client = http_client

        self._tokens: Dict[str, tuple] = {}

    def get_tenant_access_token(self, tenant_key: str = "") -> str:
        """Get a valid tenant access token.

        Args:
            tenant_key: Optional tenant key for store apps.
        """

        now = time.time()
        cached = self._tokens.get(tenant_key)
        if cached and now < cached[1] - 60:
            return cached[0]

        if tenant_key:
            app_token = self._get_app_access_token()
            payload = self._post_auth(
                path = "/open-apis/auth/v3/tenant_access_token",
                body = {
                    "app_access_token": app_token,
                    "tenant_key": tenant_key
                }
            )
        else:
            payload = self._post_auth(
                path = "/open-apis/auth/v3/tenant_access_token/internal",
                body = {
                    "app_id": self.app_id,
                    "app_secret": self.app_secret
                }
            )

        token = payload.get("tenant_access_token", "")
        expire = int(payload.get("expire", 7200))
        if not token:
            raise ApiResponseError("Feishu auth response missing tenant_access_token")

        self._tokens[tenant_key] = (token, now + expire)
        return token

    def _get_app_access_token(self) -> str:
        """Get an app access token used for the tenant key exchange.

        Args:
            self: Auth client instance.
        """

        payload = self._post_auth(
            path = "/open-apis/auth/v3/app_access_token/internal",
            body = {
                "app_id": self.app_id,
                "app_secret": self.app_secret
            }
        )
        token = payload.get("app_access_token", "")
        if not token:
            raise ApiResponseError("Feishu auth response missing app_access_token")
        return token

    def _post_auth(self, path: str, body: dict) -> dict:
        """Call one auth endpoint and check the response code.

        Args:
            path: Auth API path.
            body: JSON request body.
        """

        response = self.http_client.request(
            method = "POST",
            url = f"{self.base_url}{path}",
            json_body = body,
            allow_status = JSON_ERROR_STATUSES
        )
        try:
            payload = response.json()
        except json.JSONDecodeError as exc:
            raise ApiResponseError(
                f"Invalid JSON from {path}: {response.text[:200]}"
            ) from exc

        code = payload.get("code")
        if code != 0:
            raise ApiResponseError(
                f"Failed to get access token: {payload.get('msg', 'unknown error')}",
                code = code
            )
        return payload


class FeishuServiceBase:
    """Shared request helper for Feishu open APIs.

    Args:
        auth_client: Auth client used to generate access token.
        http_client: Shared HTTP client.
        base_url: Feishu base domain.
    """

    def __init__(
        self,
        auth_client: FeishuAuthClient,
        http_client: HttpClient,
        base_url: str
    ) -> None:
        self.auth_client = auth_client
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")

    def _request_json(
        self,
        method: str,
        path: str,
        context: Optional[RequestContext] = None,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None
    ) -> dict:
        """Send signed request and parse Feishu JSON payload.

        Args:
            method: HTTP method.
            path: Open API path.
            context: Optional tenant/user authorization context.
            params: Query parameters.
            json_body: JSON request body.
        """

        headers = {
            "Authorization": f"Bearer {self._resolve_access_token(context = context)}"
        }
        response = self.http_client.request(
            method = method,
            url = f"{self.base_url}{path}",
            headers = headers,
            params = params,
            json_body = json_body,
            allow_status = JSON_ERROR_STATUSES
        )

        try:
            payload = response.json()
        except json.JSONDecodeError as exc:
            if response.status_code == 404:
                raise DocumentNotFoundError(f"Resource not found: {path}") from exc
            raise ApiResponseError(
                f"Invalid JSON from {path}: {response.text[:200]}"
            ) from exc

        code = payload.get("code")
        if code != 0:
            message = (
                f"Feishu API failed for {path}: code = {code}, msg = {payload.get('msg', 'unknown')}"
            )
            if str(code) in NOT_FOUND_CODES or response.status_code == 404:
                raise DocumentNotFoundError(message, code = code)
            raise ApiResponseError(message, code = code)

        return payload

    def _resolve_access_token(self, context: Optional[RequestContext]) -> str:
        """Pick the user token when supplied, otherwise the tenant token.

        Args:
            context: Optional tenant/user authorization context.
        """

        context = context or RequestContext()
        if context.user_access_token:
            return context.user_access_token
        return self.auth_client.get_tenant_access_token(tenant_key = context.tenant_key)


class DocxApi(FeishuServiceBase):
    """Docx document and block endpoints."""

    def create_document(
        self,
        title: str,
        folder_token: str = "",
        context: Optional[RequestContext] = None
    ) -> dict:
        """Create an empty docx document and return its `document` object.

        Args:
            title: Document title.
            folder_token: Optional folder token.
            context: Optional authorization context.
        """

        body = {"title": title}
        if folder_token:
            body["folder_token"] = folder_token

        _log_api_call("Create document", "docx.document.create", title = title, folder_token = folder_token)
        payload = self._request_json(
            method = "POST",
            path = "/open-apis/docx/v1/documents",
            context = context,
            json_body = body
        )
        return (payload.get("data") or {}).get("document") or {}

    def get_document(self, document_id: str, context: Optional[RequestContext] = None) -> dict:
        """Fetch document metadata.

        Args:
            document_id: Document token.
            context: Optional authorization context.
        """

        _log_api_call("Get document metadata", "docx.document.get", document_id = document_id)
        payload = self._request_json(
            method = "GET",
            path = f"/open-apis/docx/v1/documents/{document_id}",
            context = context
        )
        return (payload.get("data") or {}).get("document") or {}

    def get_raw_content(self, document_id: str, context: Optional[RequestContext] = None) -> str:
        """Fetch document plain text content.

        Args:
            document_id: Document token.
            context: Optional authorization context.
        """

        _log_api_call("Get document raw content", "docx.document.rawContent", document_id = document_id)
        payload = self._request_json(
            method = "GET",
            path = f"/open-apis/docx/v1/documents/{document_id}/raw_content",
            context = context
        )
        return str((payload.get("data") or {}).get("content") or "")

    def list_blocks(self, document_id: str, context: Optional[RequestContext] = None) -> List[dict]:
        """List all blocks of one document, following pagination.

        Args:
            document_id: Document token.
            context: Optional authorization context.
        """

        items: List[dict] = []
        page_token = ""
        while True:
            params = {
                "page_size": str(LIST_BLOCKS_PAGE_SIZE),
                "document_revision_id": "-1"
            }
            if page_token:
                params["page_token"] = page_token

            _log_api_call(
                "Get document blocks",
                "docx.documentBlock.list",
                document_id = document_id,
                page_size = LIST_BLOCKS_PAGE_SIZE,
                page_token = page_token
            )
            payload = self._request_json(
                method = "GET",
                path = f"/open-apis/docx/v1/documents/{document_id}/blocks",
                context = context,
                params = params
            )
            data = payload.get("data") or {}
            items.extend(item for item in data.get("items") or [] if isinstance(item, dict))

            if not data.get("has_more"):
                break
            page_token = str(data.get("page_token", "") or "").strip()
            if not page_token:
                break

        return items

    def create_children(
        self,
        document_id: str,
        block_id: str,
        children: List[dict],
        index: int,
        context: Optional[RequestContext] = None
    ) -> dict:
        """Insert child blocks under one parent block at a given index.

        Args:
            document_id: Document token.
            block_id: Parent block id.
            children: Nested block payloads.
            index: Insert position among the parent's children.
            context: Optional authorization context.
        """

        payload = self._request_json(
            method = "POST",
            path = f"/open-apis/docx/v1/documents/{document_id}/blocks/{block_id}/children",
            context = context,
            params = {
                "document_revision_id": "-1",
                "client_token": str(uuid.uuid4())
            },
            json_body = {
                "index": index,
                "children": children
            }
        )
        return payload.get("data") or {}

    def delete_children(
        self,
        document_id: str,
        block_id: str,
        start_index: int,
        end_index: int,
        context: Optional[RequestContext] = None
    ) -> None:
        """Delete the child range [start_index, end_index) of one block.

        Args:
            document_id: Document token.
            block_id: Parent block id.
            start_index: First child index to delete.
            end_index: Child index right after the last one to delete.
            context: Optional authorization context.
        """

        _log_api_call(
            "Delete content blocks",
            "docx.documentBlockChildren.batchDelete",
            document_id = document_id,
            block_id = block_id,
            start_index = start_index,
            end_index = end_index
        )
        self._request_json(
            method = "DELETE",
            path = f"/open-apis/docx/v1/documents/{document_id}/blocks/{block_id}/children/batch_delete",
            context = context,
            params = {
                "document_revision_id": "-1",
                "client_token": str(uuid.uuid4())
            },
            json_body = {
                "start_index": start_index,
                "end_index": end_index
            }
        )

    def convert_markdown(self, content: str, context: Optional[RequestContext] = None) -> dict:
        """Convert markdown into a flat block map plus root ordering.

        Args:
            content: Markdown text.
            context: Optional authorization context.
        """

        _log_api_call(
            "Convert content to document blocks",
            "docx.document.convert",
            content_length = len(content),
            content_type = "markdown"
        )
        payload = self._request_json(
            method = "POST",
            path = "/open-apis/docx/v1/documents/blocks/convert",
            context = context,
            json_body = {
                "content_type": "markdown",
                "content": content
            }
        )
        return payload.get("data") or {}


class DriveApi(FeishuServiceBase):
    """Drive file endpoints."""

    def delete_file(
        self,
        file_token: str,
        file_type: str = "docx",
        context: Optional[RequestContext] = None
    ) -> None:
        """Move one file into the recycle bin.

        Args:
            file_token: File token.
            file_type: Drive file type.
            context: Optional authorization context.
        """

        _log_api_call("Delete document", "drive.file.delete", file_token = file_token, type = file_type)
        self._request_json(
            method = "DELETE",
            path = f"/open-apis/drive/v1/files/{file_token}",
            context = context,
            params = {"type": file_type}
        )


class WikiApi(FeishuServiceBase):
    """Wiki space node endpoints."""

    def move_docs_to_wiki(
        self,
        space_id: str,
        parent_node_token: str,
        obj_token: str,
        obj_type: str = "docx",
        context: Optional[RequestContext] = None
    ) -> str:
        """Move one cloud document under a wiki node and return the node token.

        An empty token means the service accepted the move as an async task.

        Args:
            space_id: Wiki space id.
            parent_node_token: Parent wiki node token.
            obj_token: Document token.
            obj_type: Document type.
            context: Optional authorization context.
        """

        _log_api_call(
            "Move document to wiki",
            "wiki.spaceNode.moveDocsToWiki",
            space_id = space_id,
            parent_node_token = parent_node_token,
            obj_token = obj_token,
            obj_type = obj_type
        )
        payload = self._request_json(
            method = "POST",
            path = f"/open-apis/wiki/v2/spaces/{space_id}/nodes/move_docs_to_wiki",
            context = context,
            json_body = {
                "parent_wiki_token": parent_node_token,
                "obj_type": obj_type,
                "obj_token": obj_token
            }
        )

        data = payload.get("data") or {}
        candidates = [
            data.get("wiki_token"),
            data.get("node_token"),
            (data.get("node") or {}).get("node_token")
        ]
        token = next((item for item in candidates if item), "")
        if not token and data.get("task_id"):
            logger.info("move_docs_to_wiki accepted as async task: task_id = %s", data.get("task_id"))
        return token


class PermissionApi(FeishuServiceBase):
    """Drive permission member endpoints."""

    def add_member(
        self,
        token: str,
        entry: CollaboratorEntry,
        file_type: str = "docx",
        context: Optional[RequestContext] = None
    ) -> dict:
        """Grant one member access to a document.

        Args:
            token: Document token.
            entry: Collaborator definition.
            file_type: Drive file type.
            context: Optional authorization context.
        """

        _log_api_call(
            "Add collaborator",
            "drive.permissionMember.create",
            token = token,
            member_type = entry.member_type,
            member_id = entry.member_id,
            perm = entry.perm
        )
        payload = self._request_json(
            method = "POST",
            path = f"/open-apis/drive/v1/permissions/{token}/members",
            context = context,
            params = {
                "type": file_type,
                "need_notification": "true" if entry.need_notification else "false"
            },
            json_body = {
                "member_type": entry.member_type,
                "member_id": entry.member_id,
                "perm": entry.perm
            }
        )
        return (payload.get("data") or {}).get("member") or {}
