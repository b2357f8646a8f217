from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import uvicorn
import logging

from gallery.storage.blob_store import BlobStore
from gallery.storage.metadata_store import MetadataStore
from gallery.settings import settings
from gallery.routers.image_service import router as image_router
from gallery.exceptions import add_exception_handlers

logging.basicConfig(level=settings.log_level.upper())
log = logging.getLogger("image-gallery")

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
        Async context manager for FastAPI application lifecycle events.
        Opens the blob directory and the metadata file for the application.
    """
    # Initialize resources
    app.state.blobs = BlobStore(settings.storage_dir)
    app.state.db = MetadataStore(settings.metadata_file)
    yield
    # Cleanup resources
    app.state.blobs.close()
    app.state.db.close()

# Initialize App
app = FastAPI(
    title=settings.app_title,
    lifespan=lifespan,
    description="Image Gallery Service",
    root_path=settings.root_path
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
app.include_router(image_router)

# Check Health
@app.get("/")
def read_root():
    """
        Default end point

    """
    return "Image Gallery Service is running."

if __name__ == "__main__":
    uvicorn.run("gallery.main:app", host="0.0.0.0", port=8000, reload=True)
