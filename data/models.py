from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Dict


DEFAULT_COLLABORATOR_PERM = "edit"


@dataclass
class RequestContext:
    """Authorization context attached to every open API call.

    Args:
        tenant_key: Tenant key for store apps, empty for self-built apps.
        user_access_token: User token; when set it replaces the tenant token.
    """

    tenant_key: str = ""
    user_access_token: str = ""


@dataclass
class DocumentRef:
    """Metadata of one docx document returned to the CLI.

    Args:
        document_id: Immutable document token.
        title: Document title.
        revision_id: Revision marker reported by the service.
        wiki_node_token: Wiki node token once moved into a wiki space.
        moved_to_wiki: Whether the document now lives in a wiki space.
        collaborators: CollaboratorResult list from the best-effort share step.
    """

    document_id: str
    title: str = ""
    revision_id: Any = None
    wiki_node_token: str = ""
    moved_to_wiki: bool = False
    collaborators: list = field(default_factory = list)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "DocumentRef":
        """Build a reference from the `document` object of a docx response.

        Args:
            payload: Raw document dict.
        """

        return cls(
            document_id = str(payload.get("document_id", "") or ""),
            title = str(payload.get("title", "") or ""),
            revision_id = payload.get("revision_id")
        )

    def to_output(self) -> Dict[str, Any]:
        """Build the JSON object printed by the create command.

        Args:
            self: Document reference.
        """

        output = {
            "document_id": self.document_id,
            "title": self.title,
            "revision_id": self.revision_id
        }
        if self.moved_to_wiki:
            output["wiki_node_token"] = self.wiki_node_token
            output["moved_to_wiki"] = True
        if self.collaborators:
            output["collaborators"] = [result.to_output() for result in self.collaborators]
        return output


@dataclass
class CollaboratorEntry:
    """One permission member to add to a document.

    Args:
        member_type: Member id type such as openid, email or userid.
        member_id: Member identifier.
        perm: Permission level: view, edit or full_access.
        need_notification: Whether the service notifies the member.
    """

    member_type: str
    member_id: str
    perm: str = DEFAULT_COLLABORATOR_PERM
    need_notification: bool = False

    def label(self) -> str:
        return f"{self.member_type}:{self.member_id}:{self.perm}"


@dataclass
class CollaboratorResult:
    """Outcome of one best-effort collaborator add call.

    Args:
        entry: Requested collaborator.
        ok: Whether the add call succeeded.
        error: Error summary when the call failed.
    """

    entry: CollaboratorEntry
    ok: bool
    error: str = ""

    def to_output(self) -> Dict[str, Any]:
        output = {
            "member": self.entry.label(),
            "ok": self.ok
        }
        if self.error:
            output["error"] = self.error
        return output


@dataclass
class BatchAppendResult:
    """Summary of one chunked append run.

    Args:
        inserted: Number of blocks inserted.
        batches: Number of create-children calls issued.
        next_index: Child index right after the last inserted block.
        batch_sizes: Block count of each issued batch, in order.
    """

    inserted: int = 0
    batches: int = 0
    next_index: int = 0
    batch_sizes: list = field(default_factory = list)
