import sys
import json
import argparse
import logging

from pathlib import Path
from typing import List
from typing import Optional

from config.config import AppConfig
from core.document_service import DocumentService
from core.exceptions import AppError
from core.exceptions import PartialAppendError
from core.exceptions import ValidationError
from data.models import DEFAULT_COLLABORATOR_PERM
from data.models import CollaboratorEntry
from data.models import RequestContext
from integrations.feishu_api import DocxApi
from integrations.feishu_api import DriveApi
from integrations.feishu_api import FeishuAuthClient
from integrations.feishu_api import PermissionApi
from integrations.feishu_api import WikiApi
from utils.doc_token import extract_document_id
from utils.http_client import HttpClient
from utils.logging_setup import configure_cli_logging


logger = logging.getLogger(__name__)


def _build_common_parser() -> argparse.ArgumentParser:
    """Build flags shared by every subcommand.

    Args:
        None
    """

    common = argparse.ArgumentParser(add_help = False)
    common.add_argument("--app-id", default = "", help = "Feishu app id (env LARK_APP_ID)")
    common.add_argument("--app-secret", default = "", help = "Feishu app secret (env LARK_APP_SECRET)")
    common.add_argument("--tenant-key", default = "", help = "Tenant key for store apps (env LARK_TENANT_KEY)")
    common.add_argument(
        "--user-access-token",
        default = "",
        help = "User access token when required by the API scope (env LARK_USER_ACCESS_TOKEN)"
    )
    common.add_argument(
        "--base-url",
        default = "",
        help = "Open platform base url, e.g. https://open.larksuite.com (env LARK_BASE_URL)"
    )
    common.add_argument("--log-dir", default = "", help = "Write a per-run log file under this directory")
    common.add_argument("-v", "--verbose", action = "store_true", help = "Log API calls to stderr")
    return common


def _add_content_arguments(parser: argparse.ArgumentParser, help_prefix: str) -> None:
    """Attach content input flags to one subcommand.

    Args:
        parser: Subcommand parser.
        help_prefix: Help text describing what the content is for.
    """

    parser.add_argument("-c", "--content", default = None, help = f"{help_prefix} content")
    parser.add_argument("--content-file", default = "", help = f"Path to a file used as {help_prefix.lower()} content")
    parser.add_argument(
        "-m",
        "--markdown",
        action = "store_true",
        help = "Treat content as markdown and convert to document blocks"
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments.

    Args:
        argv: Argument list, defaults to sys.argv[1:].
    """

    common = _build_common_parser()
    parser = argparse.ArgumentParser(
        prog = "lark-doc",
        description = "Create, read, update and delete Feishu docx documents"
    )
    subparsers = parser.add_subparsers(dest = "command", metavar = "<command>")
    subparsers.required = True

    create = subparsers.add_parser("create", parents = [common], help = "Create a new Feishu doc")
    create.add_argument("-t", "--title", required = True, help = "Document title")
    create.add_argument("-f", "--folder", default = "", help = "Folder token to place the doc under")
    _add_content_arguments(parser = create, help_prefix = "Initial")
    create.add_argument(
        "-a",
        "--collaborator",
        action = "append",
        default = [],
        help = "Collaborator in the form memberType:memberId[:perm] (repeatable)"
    )
    create.add_argument(
        "--notify-collaborators",
        action = "store_true",
        help = "Ask Feishu to notify added collaborators"
    )
    create.add_argument("-w", "--wiki", action = "store_true", help = "Move document to wiki after creation")
    create.add_argument("--wiki-space", default = "", help = "Wiki space id (overrides LARK_WIKI_SPACE_ID)")
    create.add_argument("--wiki-node", default = "", help = "Wiki node id (overrides LARK_WIKI_ROOT_ID)")

    read = subparsers.add_parser("read", parents = [common], help = "Fetch document metadata and optional content")
    read.add_argument("document_id", help = "Document token or docx URL")
    read.add_argument("-r", "--raw", action = "store_true", help = "Include raw text content")
    read.add_argument("--show-content", action = "store_true", help = "Alias for --raw")

    update = subparsers.add_parser("update", parents = [common], help = "Append content to the document")
    update.add_argument("document_id", help = "Document token or docx URL")
    _add_content_arguments(parser = update, help_prefix = "Appended")
    update.add_argument(
        "--replace",
        action = "store_true",
        help = "Replace existing document content instead of appending"
    )

    delete = subparsers.add_parser("delete", parents = [common], help = "Move the document to the recycle bin")
    delete.add_argument("document_id", help = "Document token or docx URL")

    return parser.parse_args(argv)


def resolve_content_input(content: Optional[str], content_file: str) -> Optional[str]:
    """Pick content from inline text or a file.

    Args:
        content: Inline content flag value.
        content_file: Content file path flag value.
    """

    if content is not None and content_file:
        raise ValidationError("Use either --content or --content-file, not both")
    if content_file:
        return Path(content_file).resolve().read_text(encoding = "utf-8")
    return content


def parse_collaborator_entry(entry: str, need_notification: bool = False) -> Optional[CollaboratorEntry]:
    """Parse one memberType:memberId[:perm] definition.

    Args:
        entry: Raw definition.
        need_notification: Notification flag for the created entry.
    """

    value = str(entry or "").strip()
    if not value:
        return None

    parts = value.split(":")
    if len(parts) < 2 or not parts[0].strip() or not parts[1].strip():
        raise ValidationError(
            f'Invalid collaborator definition: "{value}". Use memberType:memberId[:perm]'
        )

    perm = parts[2].strip() if len(parts) > 2 else ""
    return CollaboratorEntry(
        member_type = parts[0].strip(),
        member_id = parts[1].strip(),
        perm = perm or DEFAULT_COLLABORATOR_PERM,
        need_notification = need_notification
    )


def resolve_collaborators(
    cli_values: List[str],
    env_value: str,
    need_notification: bool = False
) -> List[CollaboratorEntry]:
    """Build collaborators from CLI flags, falling back to the env default list.

    Args:
        cli_values: Repeated --collaborator values.
        env_value: Comma separated LARK_DEFAULT_COLLABORATORS value.
        need_notification: Notification flag for every entry.
    """

    raw_values = list(cli_values) if cli_values else env_value.split(",")
    entries = []
    for raw in raw_values:
        entry = parse_collaborator_entry(entry = raw, need_notification = need_notification)
        if entry:
            entries.append(entry)
    return entries


def build_config(args: argparse.Namespace) -> AppConfig:
    """Layer CLI flags over environment configuration.

    Args:
        args: Parsed CLI arguments.
    """

    config = AppConfig.from_env().with_overrides(
        app_id = args.app_id,
        app_secret = args.app_secret,
        tenant_key = args.tenant_key,
        user_access_token = args.user_access_token,
        base_url = args.base_url.rstrip("/"),
        log_dir = args.log_dir
    )
    return config


def build_service(config: AppConfig) -> DocumentService:
    """Wire HTTP, auth and API clients into a document service.

    Args:
        config: Runtime configuration with validated credentials.
    """

    config.validate_credentials()

    http_client = HttpClient(
        timeout = config.request_timeout,
        max_retries = config.max_retries,
        retry_backoff = config.retry_backoff
    )
    auth_client = FeishuAuthClient(
        app_id = config.app_id,
        app_secret = config.app_secret,
        base_url = config.base_url,
        http_client = http_client
    )
    api_kwargs = {
        "auth_client": auth_client,
        "http_client": http_client,
        "base_url": config.base_url
    }
    return DocumentService(
        docx_api = DocxApi(**api_kwargs),
        drive_api = DriveApi(**api_kwargs),
        wiki_api = WikiApi(**api_kwargs),
        permission_api = PermissionApi(**api_kwargs),
        context = RequestContext(
            tenant_key = config.tenant_key,
            user_access_token = config.user_access_token
        )
    )


def handle_create(args: argparse.Namespace, config: AppConfig, service: DocumentService) -> int:
    """Create one document and print its metadata as JSON.

    Args:
        args: Parsed CLI arguments.
        config: Runtime configuration.
        service: Document service.
    """

    content = resolve_content_input(content = args.content, content_file = args.content_file)
    collaborators = resolve_collaborators(
        cli_values = args.collaborator,
        env_value = config.default_collaborators,
        need_notification = args.notify_collaborators
    )

    move_to_wiki = args.wiki or config.wiki_auto_move
    wiki_space_id = args.wiki_space or config.wiki_space_id
    wiki_node_id = args.wiki_node or config.wiki_node_id
    if move_to_wiki and not (wiki_space_id and wiki_node_id):
        logger.warning("Wiki move requested but wiki space id or node id is missing; skipping move")
    if not move_to_wiki:
        wiki_space_id = ""
        wiki_node_id = ""

    document = service.create_document(
        title = args.title,
        folder_token = args.folder,
        content = content,
        markdown = args.markdown,
        wiki_space_id = wiki_space_id,
        wiki_node_id = wiki_node_id,
        collaborators = collaborators
    )
    output = document.to_output()
    print(json.dumps(output, ensure_ascii = False, indent = 2))
    return 0


def handle_read(args: argparse.Namespace, config: AppConfig, service: DocumentService) -> int:
    """Print document metadata, and raw text when requested.

    Args:
        args: Parsed CLI arguments.
        config: Runtime configuration.
        service: Document service.
    """

    document_id = extract_document_id(args.document_id)
    result = {"document": service.get_document(document_id = document_id)}
    if args.raw or args.show_content:
        result["raw_content"] = service.get_raw_content(document_id = document_id)
    print(json.dumps(result, ensure_ascii = False, indent = 2))
    return 0


def handle_update(args: argparse.Namespace, config: AppConfig, service: DocumentService) -> int:
    """Append (or replace) document content.

    Args:
        args: Parsed CLI arguments.
        config: Runtime configuration.
        service: Document service.
    """

    document_id = extract_document_id(args.document_id)
    content = resolve_content_input(content = args.content, content_file = args.content_file)
    if content is None:
        raise ValidationError("Update command requires --content or --content-file")

    if args.replace:
        result = service.replace_document_content(
            document_id = document_id,
            text = content,
            markdown = args.markdown
        )
    else:
        result = service.append_document_content(
            document_id = document_id,
            text = content,
            markdown = args.markdown
        )
    logger.info(
        "update done: document_id = %s, blocks = %d, batches = %d",
        document_id,
        result.inserted,
        result.batches
    )
    print(f"Document {document_id} updated")
    return 0


def handle_delete(args: argparse.Namespace, config: AppConfig, service: DocumentService) -> int:
    """Move the document to the recycle bin.

    Args:
        args: Parsed CLI arguments.
        config: Runtime configuration.
        service: Document service.
    """

    document_id = extract_document_id(args.document_id)
    service.delete_document(document_id = document_id)
    print(f"Document {document_id} deleted")
    return 0


COMMAND_HANDLERS = {
    "create": handle_create,
    "read": handle_read,
    "update": handle_update,
    "delete": handle_delete
}


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint.

    Args:
        argv: Argument list, defaults to sys.argv[1:].
    """

    try:
        args = parse_args(argv)
    except SystemExit as exc:
        # argparse has already printed usage or help
        return 0 if exc.code in (0, None) else 1

    try:
        config = build_config(args = args)
        configure_cli_logging(verbose = args.verbose, log_dir = config.log_dir)
        service = build_service(config = config)
        return COMMAND_HANDLERS[args.command](args, config, service)
    except PartialAppendError as exc:
        logger.error("partial append: inserted = %d, batches = %d", exc.inserted, exc.batches_done)
        print(str(exc), file = sys.stderr)
        return 1
    except (AppError, OSError, ValueError) as exc:
        logger.debug("command failed", exc_info = True)
        print(str(exc), file = sys.stderr)
        return 1


def run() -> None:
    """Console script wrapper.

    Args:
        None
    """

    try:
        exit_code = main()
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
