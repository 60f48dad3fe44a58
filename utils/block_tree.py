import copy
import logging

from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Set


logger = logging.getLogger(__name__)

IDENTIFIER_FIELDS = ("block_id", "parent_id")


def index_blocks_by_id(blocks: Any) -> Dict[str, dict]:
    """Build a block id map from the convert response `blocks` field.

    Args:
        blocks: Block list or an already keyed block dict.
    """

    if isinstance(blocks, dict):
        return {
            str(block_id): block
            for block_id, block in blocks.items()
            if isinstance(block, dict)
        }

    result: Dict[str, dict] = {}
    for block in blocks or []:
        if not isinstance(block, dict):
            continue
        block_id = block.get("block_id")
        if block_id:
            result[str(block_id)] = block
    return result


def build_block_tree(block_map: Dict[str, dict], root_ids: List[str]) -> List[dict]:
    """Rebuild nested blocks from a flat id map and the root ordering.

    Ids missing from the map are dropped at every level. Each id is emitted at
    most once, so cyclic or repeated references terminate.

    Args:
        block_map: Block id to raw block record.
        root_ids: Ordered first level block ids.
    """

    if not block_map or not root_ids:
        return []

    seen: Set[str] = set()
    result: List[dict] = []
    for block_id in root_ids:
        node = _build_node(block_map = block_map, block_id = block_id, seen = seen)
        if node is not None:
            result.append(node)
    return result


def _build_node(block_map: Dict[str, dict], block_id: str, seen: Set[str]) -> Optional[dict]:
    """Resolve one block id into a nested block without identifiers.

    Args:
        block_map: Block id to raw block record.
        block_id: Block id to resolve.
        seen: Ids already emitted.
    """

    record = block_map.get(block_id)
    if not isinstance(record, dict):
        return None
    if block_id in seen:
        logger.warning("skip repeated block reference: block_id = %s", block_id)
        return None
    seen.add(block_id)

    node = {
        key: copy.deepcopy(value)
        for key, value in record.items()
        if key not in IDENTIFIER_FIELDS and key != "children"
    }

    child_ids = record.get("children")
    if isinstance(child_ids, list) and child_ids:
        children = []
        for child_id in child_ids:
            child = _build_node(block_map = block_map, block_id = child_id, seen = seen)
            if child is not None:
                children.append(child)
        if children:
            node["children"] = children

    return node


def reshape_converted_blocks(converted: Optional[dict]) -> List[dict]:
    """Reshape a markdown convert response into append-ready nested blocks.

    Args:
        converted: `data` object of the convert response.
    """

    if not isinstance(converted, dict):
        return []

    root_ids = converted.get("first_level_block_ids") or []
    block_map = index_blocks_by_id(converted.get("blocks"))
    return build_block_tree(block_map = block_map, root_ids = list(root_ids))
