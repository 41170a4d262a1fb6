from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vendorhub.src import schemas
from vendorhub.src.constants import API_TITLE, API_VERSION
from vendorhub.src.exceptions import registerHandlers
from vendorhub.api.controller import app_admin, app_vendor, app_public


app = FastAPI(title=API_TITLE, version=API_VERSION)

origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
registerHandlers(app)

app.mount("/admin", app_admin, "Admin API")
app.mount("/vendor", app_vendor, "Vendor API")
app.mount("/public", app_public, "Public API")


# Health check endpoint
@app.get("/health", tags=["Health Check"], response_model=schemas.HealthStatus)
async def health_check():
    return {"status": "OK", "version": API_VERSION}
