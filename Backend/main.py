from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from mbserver.api import cdtoc, releases
import traceback
import logging
import uvicorn # For running programmatically
import os # For path manipulation



# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("mbserver")
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

app = FastAPI(title="MusicBrainz Disc ID API")

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Log unexpected errors with their traceback; HTTP errors keep FastAPI's handling
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    error_detail = traceback.format_exc()
    logger.error(f"Unhandled exception: {str(exc)}\n{error_detail}")
    return JSONResponse(
        status_code=500,
        content={
            "error": str(exc),
            "path": request.url.path
        }
    )

# Include routes
app.include_router(cdtoc.router, prefix="/api", tags=["Disc IDs"])
app.include_router(releases.router, prefix="/api", tags=["Releases"])


@app.get("/")
async def root():
    return {"message": "Welcome to the MusicBrainz Disc ID API"}


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("main:app", host="0.0.0.0", port=port, log_level="info")
