import boto3
import json
from decimal import Decimal
from typing import Optional, Dict, Any, List
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from gallery.settings import settings
import logging

log = logging.getLogger(__name__)

USER_INDEX = "UserCreatedIndex"

def to_dynamo(value: Any) -> Any:
    """DynamoDB rejects floats; round-trip through JSON so they become Decimals."""
    return json.loads(json.dumps(value), parse_float=Decimal)

def from_dynamo(value: Any) -> Any:
    if isinstance(value, list):
        return [from_dynamo(v) for v in value]
    if isinstance(value, dict):
        return {k: from_dynamo(v) for k, v in value.items()}
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value

def images_table_definition(table_name: str) -> Dict[str, Any]:
    return dict(
        TableName=table_name,
        KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": "id", "AttributeType": "S"},
            {"AttributeName": "user_id", "AttributeType": "S"},
            {"AttributeName": "created_at", "AttributeType": "S"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": USER_INDEX,
                "KeySchema": [
                    {"AttributeName": "user_id", "KeyType": "HASH"},
                    {"AttributeName": "created_at", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
                "ProvisionedThroughput": {"ReadCapacityUnits": 5, "WriteCapacityUnits": 5},
            }
        ],
        ProvisionedThroughput={"ReadCapacityUnits": 5, "WriteCapacityUnits": 5},
    )

def tags_table_definition(table_name: str) -> Dict[str, Any]:
    # (user_id, name) primary key gives per-owner uniqueness
    return dict(
        TableName=table_name,
        KeySchema=[
            {"AttributeName": "user_id", "KeyType": "HASH"},
            {"AttributeName": "name", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "user_id", "AttributeType": "S"},
            {"AttributeName": "name", "AttributeType": "S"},
        ],
        ProvisionedThroughput={"ReadCapacityUnits": 5, "WriteCapacityUnits": 5},
    )

# -------------------------
# DynamoDB Service
# -------------------------
class DynamoDBService:
    def __init__(self):
        session = boto3.session.Session(region_name=settings.aws_region)
        kwargs = {
            "aws_access_key_id": settings.aws_access_key_id,
            "aws_secret_access_key": settings.aws_secret_access_key,
        }
        if settings.aws_endpoint_url:
            kwargs["endpoint_url"] = settings.aws_endpoint_url

        self.resource = session.resource("dynamodb", **kwargs)
        self.images = self.resource.Table(settings.dynamodb_table)
        self.tags = self.resource.Table(settings.dynamodb_tags_table)
        log.info("Initialized DynamoDB resource")

        # Ensure tables exist at initialization
        self.ensure_table(self.images, images_table_definition(settings.dynamodb_table))
        self.ensure_table(self.tags, tags_table_definition(settings.dynamodb_tags_table))

    # Refer here: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/dynamodb/client/create_table.html
    def ensure_table(self, table, definition: Dict[str, Any]):
        try:
            table.load()
        except ClientError:
            created = self.resource.create_table(**definition)
            created.wait_until_exists()
            log.info("Created table %s", definition["TableName"])

    # images

    def put_image(self, item: Dict[str, Any]):
        self.images.put_item(Item=to_dynamo(item))
        log.debug("Inserted image %s", item.get("id"))

    def get_image(self, image_id: str) -> Optional[Dict[str, Any]]:
        resp = self.images.get_item(Key={"id": image_id})
        item = resp.get("Item")
        return from_dynamo(item) if item else None

    def query_images(self, user_id: str) -> List[Dict[str, Any]]:
        """Returns every image owned by user_id, newest first."""
        query_kwargs = {
            "IndexName": USER_INDEX,
            "KeyConditionExpression": Key("user_id").eq(user_id),
            "ScanIndexForward": False,
        }
        items = []
        while True:
            resp = self.images.query(**query_kwargs)
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            query_kwargs["ExclusiveStartKey"] = last_key
        return [from_dynamo(item) for item in items]

    def update_image(self, image_id: str, user_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Applies changes to an owned image. Returns None when the image is missing or owned by someone else."""
        names = {"#owner": "user_id", "#pk": "id"}
        values = {":owner": user_id}
        assignments = []
        for i, (field, value) in enumerate(changes.items()):
            names[f"#f{i}"] = field
            values[f":v{i}"] = to_dynamo(value)
            assignments.append(f"#f{i} = :v{i}")
        try:
            resp = self.images.update_item(
                Key={"id": image_id},
                UpdateExpression="SET " + ", ".join(assignments),
                ConditionExpression="attribute_exists(#pk) AND #owner = :owner",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return None
            raise
        log.debug("Updated image %s", image_id)
        return from_dynamo(resp["Attributes"])

    def delete_image(self, image_id: str, user_id: str) -> bool:
        try:
            self.images.delete_item(
                Key={"id": image_id},
                ConditionExpression="attribute_exists(#pk) AND user_id = :owner",
                ExpressionAttributeNames={"#pk": "id"},
                ExpressionAttributeValues={":owner": user_id},
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return False
            raise
        log.debug("Deleted image %s", image_id)
        return True

    # tags

    def upsert_tag(self, user_id: str, name: str, tag_id: str, created_at: str) -> Dict[str, Any]:
        """Creates the (user, name) tag or returns the existing one untouched."""
        resp = self.tags.update_item(
            Key={"user_id": user_id, "name": name},
            UpdateExpression="SET #id = if_not_exists(#id, :id), created_at = if_not_exists(created_at, :created)",
            ExpressionAttributeNames={"#id": "id"},
            ExpressionAttributeValues={":id": tag_id, ":created": created_at},
            ReturnValues="ALL_NEW",
        )
        return from_dynamo(resp["Attributes"])

    def query_tags(self, user_id: str) -> List[Dict[str, Any]]:
        """Returns the owner's tags sorted by name."""
        query_kwargs = {"KeyConditionExpression": Key("user_id").eq(user_id)}
        items = []
        while True:
            resp = self.tags.query(**query_kwargs)
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            query_kwargs["ExclusiveStartKey"] = last_key
        return [from_dynamo(item) for item in items]

    def delete_tag(self, user_id: str, name: str) -> bool:
        try:
            self.tags.delete_item(
                Key={"user_id": user_id, "name": name},
                ConditionExpression="attribute_exists(#n)",
                ExpressionAttributeNames={"#n": "name"},
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return False
            raise
        log.debug("Deleted tag %s for %s", name, user_id)
        return True

    def close(self):
        log.info("Closed DynamoDB resource")
