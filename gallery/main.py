from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import uvicorn
import logging

from gallery.storage.dynamodb import DynamoDBService
from gallery.storage.s3 import S3Service
from gallery.auth.identity import build_identity_provider
from gallery.settings import settings
from gallery.routers.image_service import router as image_router
from gallery.routers.tag_service import router as tag_router
from gallery.exceptions import add_exception_handlers

logging.basicConfig(level=logging.INFO)
log = logging.getLogger("travel-gallery")

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
        Async context manager for FastAPI application lifecycle events.
        Initializes and closes resources (S3, DynamoDB, identity provider).
        Resources already placed on app.state are kept.
    """
    # Initialize resources
    if not hasattr(app.state, "s3"):
        app.state.s3 = S3Service()
    if not hasattr(app.state, "db"):
        app.state.db = DynamoDBService()
    if not hasattr(app.state, "identity"):
        app.state.identity = build_identity_provider(settings)
    yield
    # Cleanup resources
    app.state.s3.close()
    app.state.db.close()
    await app.state.identity.close()

# Initialize App
app = FastAPI(
    title=settings.app_title,
    lifespan=lifespan,
    description="Travel photo gallery: image ingestion, thumbnails and signed URLs",
)

# Add exception handlers
add_exception_handlers(app)

# CORS - Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add the routers
app.include_router(image_router, prefix="/api")
app.include_router(tag_router, prefix="/api")

# Check Health
@app.get("/")
def read_root():
    """
        Default end point

    """
    return "Travel Gallery is running."

if __name__ == "__main__":
    uvicorn.run("gallery.main:app", host="0.0.0.0", port=8000, reload=True)
