from collections import Counter
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4
import logging
from botocore.exceptions import BotoCoreError, ClientError

from gallery.storage.dynamodb import DynamoDBService
from gallery.image_service.models import Tag, TagUsage
from gallery.exceptions import DynamoDBException, TagNotFoundException

log = logging.getLogger(__name__)

SEARCH_LIMIT = 10

def upsert_tags(db: DynamoDBService, user_id: str, names: List[str]) -> List[Tag]:
    """Creates missing tags for the owner and reuses existing ones.

    Failures are logged per tag; the image being ingested does not depend on them.
    """
    tags = []
    now = datetime.now(timezone.utc).isoformat()
    for name in dict.fromkeys(names):
        try:
            item = db.upsert_tag(user_id, name, str(uuid4()), now)
        except (BotoCoreError, ClientError) as e:
            log.warning("Could not upsert tag %s for %s: %s", name, user_id, e)
            continue
        tags.append(Tag(**item))
    return tags

def list_tags(db: DynamoDBService, user_id: str, query: Optional[str] = None) -> List[Tag]:
    """Alphabetical tags of the owner; with query, at most ten case-insensitive matches."""
    try:
        items = db.query_tags(user_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB query_tags failed: {e}")
        raise DynamoDBException("Failed to fetch tags")
    tags = sorted((Tag(**item) for item in items), key=lambda t: t.name)
    if query:
        needle = query.casefold()
        tags = [t for t in tags if needle in t.name.casefold()][:SEARCH_LIMIT]
    return tags

def tag_usage(db: DynamoDBService, user_id: str) -> List[TagUsage]:
    """Counts how many of the owner's images carry each tag, most used first."""
    try:
        items = db.query_images(user_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB query_images failed: {e}")
        raise DynamoDBException("Failed to compute tag usage")
    counts = Counter(tag for item in items for tag in item.get("tags", []))
    return [TagUsage(name=name, count=count) for name, count in counts.most_common()]

def delete_tag(db: DynamoDBService, user_id: str, name: str) -> bool:
    try:
        deleted = db.delete_tag(user_id, name)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB delete_tag failed: {e}")
        raise DynamoDBException("Failed to delete tag")
    if not deleted:
        raise TagNotFoundException(name)
    return True

def cleanup_unused_tags(db: DynamoDBService, user_id: str) -> int:
    """Deletes the owner's tags that no image references; returns how many went."""
    try:
        used = {tag for item in db.query_images(user_id) for tag in item.get("tags", [])}
        unused = [item["name"] for item in db.query_tags(user_id) if item["name"] not in used]
        for name in unused:
            db.delete_tag(user_id, name)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB cleanup failed: {e}")
        raise DynamoDBException("Failed to clean up tags")
    if unused:
        log.info("Removed %d unused tags for %s", len(unused), user_id)
    return len(unused)
