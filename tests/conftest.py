import io
import os
import pytest
from moto import mock_aws
from fastapi.testclient import TestClient
from PIL import Image

# Set test environment variables BEFORE importing gallery modules
os.environ["TESTING"] = "true"

# Dummy AWS credentials for moto
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_REGION"] = "us-east-1"
os.environ["S3_BUCKET"] = "travel-gallery"
os.environ["DYNAMODB_TABLE"] = "Images"
os.environ["DYNAMODB_TAGS_TABLE"] = "Tags"
os.environ["TRUST_USER_HEADER"] = "true"
# Clear the endpoint so moto mocks are used instead of localstack
os.environ.pop("AWS_ENDPOINT_URL", None)
os.environ.pop("IDENTITY_URL", None)

from gallery.main import app
from gallery.storage.s3 import S3Service
from gallery.storage.dynamodb import DynamoDBService
from gallery.auth.identity import HeaderIdentityProvider, USER_HEADER


def make_image_bytes(width=10, height=10, fmt="PNG", color="red"):
    """Generate a simple valid image in-memory."""
    img = Image.new("RGB", (width, height), color=color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture(scope="function")
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"


@pytest.fixture(scope="function")
def aws_services(aws_credentials):
    """S3 and DynamoDB services backed by moto; buckets and tables are created on init."""
    with mock_aws():
        s3_service = S3Service()
        db_service = DynamoDBService()

        # Replace the original services with mocked ones
        app.state.s3 = s3_service
        app.state.db = db_service
        app.state.identity = HeaderIdentityProvider()
        yield s3_service, db_service


@pytest.fixture(scope="function")
def test_client(aws_services):
    with TestClient(app, headers={USER_HEADER: "user-1"}) as client:
        yield client


@pytest.fixture
def png_bytes():
    return make_image_bytes()
