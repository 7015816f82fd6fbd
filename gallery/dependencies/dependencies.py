from fastapi import Request
from gallery.storage.dynamodb import DynamoDBService
from gallery.storage.s3 import S3Service
from gallery.auth.identity import CurrentUser
from gallery.exceptions import UnauthorizedException

def get_s3_service(request: Request) -> S3Service:
    """Dependency provider for S3Service"""
    return request.app.state.s3

def get_dynamodb_service(request: Request) -> DynamoDBService:
    """Dependency provider for DynamoDBService"""
    return request.app.state.db

async def get_current_user(request: Request) -> CurrentUser:
    """Resolves the caller through the configured identity provider, or fails with 401."""
    user = await request.app.state.identity.get_current_user(request)
    if user is None:
        raise UnauthorizedException()
    return user
