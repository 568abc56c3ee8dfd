from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
import logging

from models import AutofillRequest, AutofillFromHtmlRequest
from autofill.gazetteer import GazetteerLoadError, get_gazetteer
from autofill.pipeline import get_pipeline
from config import settings

# Configure logging
logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Listing Autofill Server",
    description="Extracts listing attributes from idealista.com pages and estimates market rent",
    version="1.0.0"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Load reference data on startup"""
    try:
        gazetteer = get_gazetteer()
        logger.info(f"Gazetteer ready ({len(gazetteer.all_cities())} municipalities)")
    except GazetteerLoadError as e:
        # Without the gazetteer no city can be resolved; refuse to start
        logger.error(f"Failed to load gazetteer: {e}")
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Flush the rent market store on shutdown"""
    try:
        await get_pipeline().close()
        logger.info("Services stopped")
    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.post("/autofill")
async def autofill(request: AutofillRequest):
    """Extract listing attributes (and a rent estimate) from a listing URL"""
    result = await get_pipeline().autofill_from_url(request.url, request.cookies)
    return result.to_response()


@app.post("/autofill/from-html")
async def autofill_from_html(request: AutofillFromHtmlRequest):
    """Extract listing attributes from HTML captured by the client"""
    result = get_pipeline().extract_from_html(request.url, request.html)
    return result.to_response()


@app.get("/territorio/ciudades")
async def list_cities(codauto: int = Query(..., ge=1, le=19, description="INE autonomous community code")):
    """Municipality names for one autonomous community"""
    try:
        return {"ciudades": get_gazetteer().cities_in_region(codauto)}
    except Exception as e:
        logger.error(f"Error listing cities for region {codauto}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load cities")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.API_HOST, port=settings.PORT)
