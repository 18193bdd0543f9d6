"""
Review thread builder

Turns the flat product_reviews rows into a reply tree and applies
optimistic inserts without a re-fetch.

Ordering:
- replies: oldest first (conversation order)
- roots: newest first

Neither function raises on malformed rows. Records whose parent is missing
(or whose parent chain loops back on itself) become roots.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from agribridge.core.utils import timestamp_sort_key
from agribridge.schemas.review import ReviewNode, ReviewRecord

logger = logging.getLogger(__name__)

RecordLike = Union[ReviewRecord, Dict[str, Any]]


def _has_parent(parent_id: Any) -> bool:
    return parent_id is not None and parent_id != ""


def _to_node(record: RecordLike) -> ReviewNode:
    """Fresh node with empty replies; every original field is kept."""
    if isinstance(record, ReviewRecord):
        data = record.model_dump(exclude={"replies"})
    elif isinstance(record, dict):
        data = {k: v for k, v in record.items() if k != "replies"}
    else:
        data = {}
    try:
        return ReviewNode.model_validate(data)
    except ValidationError as e:
        # Only structured fields can fail here (e.g. a non-dict user)
        logger.warning(f"Review {data.get('id')!r} has invalid fields, keeping basics: {e}")
        return ReviewNode(
            id=data.get("id"),
            parent_id=data.get("parent_id"),
            created_at=data.get("created_at"),
            rating=data.get("rating"),
            comment=data.get("comment"),
        )


def _sort_replies(node: ReviewNode) -> None:
    node.replies.sort(key=lambda child: timestamp_sort_key(child.created_at))


def _links_back(child_id: Any, parent_id: Any, parent_of: Dict[Any, Any]) -> bool:
    """True when following parent_id upwards from parent_id reaches child_id."""
    seen = set()
    current = parent_id
    while _has_parent(current) and current not in seen:
        if current == child_id:
            return True
        seen.add(current)
        current = parent_of.get(current)
    return False


def build_review_tree(flat_records: Iterable[RecordLike]) -> List[ReviewNode]:
    """
    Build the reply forest from a flat, order-irrelevant list of reviews.

    Args:
        flat_records: review rows (dicts or ReviewRecord) with id, parent_id
            and created_at

    Returns:
        Root nodes, newest first, each with replies sorted oldest first
    """
    nodes = [_to_node(record) for record in flat_records]

    by_id: Dict[Any, ReviewNode] = {}
    parent_of: Dict[Any, Any] = {}
    for node in nodes:
        try:
            by_id.setdefault(node.id, node)
            parent_of.setdefault(node.id, node.parent_id)
        except TypeError:
            # Unhashable id; the node can only ever be a root
            continue

    roots: List[ReviewNode] = []
    orphans = 0
    for node in nodes:
        parent = None
        if _has_parent(node.parent_id):
            try:
                parent = by_id.get(node.parent_id)
            except TypeError:
                parent = None
            if parent is None:
                orphans += 1
            elif parent is node or _links_back(node.id, node.parent_id, parent_of):
                logger.warning(f"Review {node.id!r} has a cyclic parent chain, treating as root")
                parent = None
        if parent is not None:
            parent.replies.append(node)
        else:
            roots.append(node)

    for node in nodes:
        _sort_replies(node)

    # reverse=True keeps equal timestamps in input order
    roots.sort(key=lambda root: timestamp_sort_key(root.created_at), reverse=True)

    if orphans:
        logger.debug(f"Promoted {orphans} orphan review(s) to roots")

    return roots


def _insert_under(nodes: List[ReviewNode], new_node: ReviewNode) -> Optional[List[ReviewNode]]:
    """
    Depth-first search for new_node's parent.

    Returns a new list with the path to the parent copied, or None when the
    parent is not in this subtree. Siblings off the path are shared.
    """
    for index, node in enumerate(nodes):
        if node.id == new_node.parent_id:
            updated = node.model_copy(update={"replies": [*node.replies, new_node]})
        elif node.replies:
            replies = _insert_under(node.replies, new_node)
            if replies is None:
                continue
            updated = node.model_copy(update={"replies": replies})
        else:
            continue
        return [*nodes[:index], updated, *nodes[index + 1:]]
    return None


def insert_review_node(tree: List[ReviewNode], new_node: RecordLike) -> List[ReviewNode]:
    """
    Insert a freshly created review or reply without rebuilding the tree.

    Roots are prepended (newest first). Replies are appended to their
    parent's replies, which assumes the new node is the latest in its
    thread. A reply whose parent is not in the tree is prepended as a root.
    The input tree is never mutated.
    """
    if not isinstance(new_node, ReviewNode):
        new_node = _to_node(new_node)

    if not _has_parent(new_node.parent_id):
        return [new_node, *tree]

    updated = _insert_under(list(tree), new_node)
    if updated is None:
        logger.warning(
            f"Parent {new_node.parent_id!r} of review {new_node.id!r} not in tree, inserting as root"
        )
        return [new_node, *tree]
    return updated


def flatten_review_tree(roots: Iterable[ReviewNode]) -> List[ReviewNode]:
    """Pre-order walk of the forest."""
    flat: List[ReviewNode] = []
    stack = list(reversed(list(roots)))
    while stack:
        node = stack.pop()
        flat.append(node)
        stack.extend(reversed(node.replies))
    return flat


def top_level_reviews(roots: Iterable[ReviewNode]) -> List[ReviewNode]:
    """Roots that are real reviews; replies promoted because their parent is gone are excluded."""
    return [root for root in roots if not _has_parent(root.parent_id)]


def average_rating(roots: Iterable[ReviewNode]) -> float:
    """Mean rating of top-level reviews to one decimal, halves rounded up."""
    ratings = [review.rating for review in top_level_reviews(roots)]
    if not ratings:
        return 0.0
    mean = Decimal(str(sum(ratings) / len(ratings)))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
