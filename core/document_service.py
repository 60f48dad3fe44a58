import logging

from typing import List
from typing import Optional

from core.batch_dispatcher import DEFAULT_MAX_BATCH_SIZE
from core.batch_dispatcher import append_blocks_in_batches
from core.exceptions import ApiResponseError
from core.exceptions import AppError
from core.exceptions import DocumentNotFoundError
from data.models import BatchAppendResult
from data.models import CollaboratorEntry
from data.models import CollaboratorResult
from data.models import DocumentRef
from data.models import RequestContext
from integrations.feishu_api import DocxApi
from integrations.feishu_api import DriveApi
from integrations.feishu_api import PermissionApi
from integrations.feishu_api import WikiApi
from utils.block_builder import DEFAULT_MAX_BLOCK_CHARS
from utils.block_builder import text_to_paragraph_blocks
from utils.block_tree import reshape_converted_blocks


logger = logging.getLogger(__name__)


class DocumentService:
    """Create, read, update and delete docx documents.

    Args:
        docx_api: Docx document/block endpoints.
        drive_api: Drive file endpoints.
        wiki_api: Wiki node endpoints.
        permission_api: Permission member endpoints.
        context: Authorization context used for every call.
        max_chars: Maximum characters per paragraph block.
        max_batch_size: Maximum blocks per create-children call.
    """

    def __init__(
        self,
        docx_api: DocxApi,
        drive_api: DriveApi,
        wiki_api: WikiApi,
        permission_api: PermissionApi,
        context: Optional[RequestContext] = None,
        max_chars: int = DEFAULT_MAX_BLOCK_CHARS,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    ) -> None:
        self.docx_api = docx_api
        self.drive_api = drive_api
        self.wiki_api = wiki_api
        self.permission_api = permission_api
        self.context = context or RequestContext()
        self.max_chars = max_chars
        self.max_batch_size = max_batch_size

    def create_document(
        self,
        title: str,
        folder_token: str = "",
        content: Optional[str] = None,
        markdown: bool = False,
        wiki_space_id: str = "",
        wiki_node_id: str = "",
        collaborators: Optional[List[CollaboratorEntry]] = None
    ) -> DocumentRef:
        """Create one document, fill it, share it and optionally move it to wiki.

        The wiki move is best effort: when it fails the created document is
        returned unchanged and kept.

        Args:
            title: Document title.
            folder_token: Optional drive folder token.
            content: Optional initial content.
            markdown: Whether content is markdown.
            wiki_space_id: Target wiki space id.
            wiki_node_id: Target parent wiki node token.
            collaborators: Optional collaborators to add.
        """

        payload = self.docx_api.create_document(
            title = title,
            folder_token = folder_token,
            context = self.context
        )
        if not payload.get("document_id"):
            raise ApiResponseError("Unable to create document. Response missing document id")
        document = DocumentRef.from_payload(payload = payload)
        logger.info("document created: document_id = %s", document.document_id)

        if content is not None:
            blocks = self.convert_content_to_blocks(text = content, markdown = markdown)
            page_block = self.get_page_block(document_id = document.document_id)
            append_blocks_in_batches(
                block_api = self.docx_api,
                document_id = document.document_id,
                parent_block_id = page_block["block_id"],
                blocks = blocks,
                start_index = 0,
                max_batch_size = self.max_batch_size,
                context = self.context
            )

        if collaborators:
            document.collaborators = self.add_collaborators(
                document_id = document.document_id,
                entries = collaborators
            )

        if wiki_space_id and wiki_node_id:
            return self._move_created_document_to_wiki(
                document = document,
                wiki_space_id = wiki_space_id,
                wiki_node_id = wiki_node_id
            )
        return document

    def _move_created_document_to_wiki(
        self,
        document: DocumentRef,
        wiki_space_id: str,
        wiki_node_id: str
    ) -> DocumentRef:
        """Best-effort wiki move for a freshly created document.

        Args:
            document: Created document reference.
            wiki_space_id: Target wiki space id.
            wiki_node_id: Target parent wiki node token.
        """

        try:
            node_token = self.move_document_to_wiki(
                document_id = document.document_id,
                space_id = wiki_space_id,
                node_id = wiki_node_id
            )
        except AppError as exc:
            logger.warning(
                "Failed to move document to wiki, keeping original document: document_id = %s, err = %s",
                document.document_id,
                str(exc)
            )
            return document

        if not node_token:
            logger.warning(
                "wiki move returned no node token, keeping original document: document_id = %s",
                document.document_id
            )
            return document

        try:
            self.delete_document(document_id = document.document_id)
        except AppError as exc:
            logger.warning(
                "document moved to wiki but original delete failed: document_id = %s, err = %s",
                document.document_id,
                str(exc)
            )

        return DocumentRef(
            document_id = document.document_id,
            title = document.title,
            revision_id = document.revision_id,
            wiki_node_token = node_token,
            moved_to_wiki = True,
            collaborators = document.collaborators
        )

    def get_document(self, document_id: str) -> dict:
        """Fetch document metadata.

        Args:
            document_id: Document token.
        """

        document = self.docx_api.get_document(document_id = document_id, context = self.context)
        if not document:
            raise DocumentNotFoundError(f"Document not found: {document_id}")
        return document

    def get_raw_content(self, document_id: str) -> str:
        return self.docx_api.get_raw_content(document_id = document_id, context = self.context)

    def delete_document(self, document_id: str) -> None:
        """Move the document into the drive recycle bin.

        Args:
            document_id: Document token.
        """

        self.drive_api.delete_file(
            file_token = document_id,
            file_type = "docx",
            context = self.context
        )

    def append_document_content(
        self,
        document_id: str,
        text: str,
        markdown: bool = False
    ) -> BatchAppendResult:
        """Append content after the last child of the page block.

        Args:
            document_id: Document token.
            text: Plain text or markdown content.
            markdown: Whether text is markdown.
        """

        if not text:
            return BatchAppendResult()

        blocks = self.convert_content_to_blocks(text = text, markdown = markdown)
        page_block = self.get_page_block(document_id = document_id)
        return append_blocks_in_batches(
            block_api = self.docx_api,
            document_id = document_id,
            parent_block_id = page_block["block_id"],
            blocks = blocks,
            start_index = len(page_block.get("children") or []),
            max_batch_size = self.max_batch_size,
            context = self.context
        )

    def replace_document_content(
        self,
        document_id: str,
        text: str,
        markdown: bool = False
    ) -> BatchAppendResult:
        """Remove all page children, then insert the new content at index 0.

        Args:
            document_id: Document token.
            text: Plain text or markdown content.
            markdown: Whether text is markdown.
        """

        blocks = self.convert_content_to_blocks(text = text, markdown = markdown)
        page_block = self.get_page_block(document_id = document_id)
        existing = len(page_block.get("children") or [])
        if existing:
            self.docx_api.delete_children(
                document_id = document_id,
                block_id = page_block["block_id"],
                start_index = 0,
                end_index = existing,
                context = self.context
            )
        return append_blocks_in_batches(
            block_api = self.docx_api,
            document_id = document_id,
            parent_block_id = page_block["block_id"],
            blocks = blocks,
            start_index = 0,
            max_batch_size = self.max_batch_size,
            context = self.context
        )

    def add_collaborators(
        self,
        document_id: str,
        entries: List[CollaboratorEntry]
    ) -> List[CollaboratorResult]:
        """Add collaborators one by one; a failed entry never stops the rest.

        Args:
            document_id: Document token.
            entries: Collaborators to add.
        """

        results: List[CollaboratorResult] = []
        for entry in entries:
            try:
                self.permission_api.add_member(
                    token = document_id,
                    entry = entry,
                    file_type = "docx",
                    context = self.context
                )
            except AppError as exc:
                logger.warning(
                    "add collaborator failed: document_id = %s, member = %s, err = %s",
                    document_id,
                    entry.label(),
                    str(exc)
                )
                results.append(CollaboratorResult(entry = entry, ok = False, error = str(exc)))
                continue
            results.append(CollaboratorResult(entry = entry, ok = True))
        return results

    def move_document_to_wiki(self, document_id: str, space_id: str, node_id: str) -> str:
        """Move one document under a wiki node and return the node token.

        Args:
            document_id: Document token.
            space_id: Wiki space id.
            node_id: Parent wiki node token.
        """

        try:
            return self.wiki_api.move_docs_to_wiki(
                space_id = space_id,
                parent_node_token = node_id,
                obj_token = document_id,
                obj_type = "docx",
                context = self.context
            )
        except AppError as exc:
            raise ApiResponseError(
                f"Failed to move document to wiki: {exc}",
                code = getattr(exc, "code", None)
            ) from exc

    def get_page_block(self, document_id: str) -> dict:
        """Find the single page block that anchors document content.

        Args:
            document_id: Document token.
        """

        blocks = self.docx_api.list_blocks(document_id = document_id, context = self.context)
        page_blocks = [block for block in blocks if block.get("page")]
        if not page_blocks or not page_blocks[0].get("block_id"):
            raise DocumentNotFoundError(f"Unable to locate page block for document {document_id}")
        if len(page_blocks) > 1:
            logger.warning(
                "multiple page blocks found, using the first: document_id = %s, block_ids = %s",
                document_id,
                [block.get("block_id") for block in page_blocks]
            )
        return page_blocks[0]

    def convert_content_to_blocks(self, text: str, markdown: bool = False) -> List[dict]:
        """Convert content into append-ready blocks.

        Markdown goes through the remote convert endpoint; any failure or an
        empty conversion falls back to plain paragraphs.

        Args:
            text: Content to convert.
            markdown: Whether text is markdown.
        """

        if not markdown:
            return text_to_paragraph_blocks(text = text, max_chars = self.max_chars)

        try:
            converted = self.docx_api.convert_markdown(content = text, context = self.context)
            blocks = reshape_converted_blocks(converted = converted)
        except Exception as exc:
            logger.warning(
                "Failed to convert content to blocks, falling back to simple text: %s",
                str(exc)
            )
            return text_to_paragraph_blocks(text = text, max_chars = self.max_chars)

        if not blocks:
            logger.warning("markdown convert returned no blocks, falling back to simple text")
            return text_to_paragraph_blocks(text = text, max_chars = self.max_chars)
        return blocks
