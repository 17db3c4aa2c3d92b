from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fleet.src import schemas
from fleet.src.constants import API_TITLE, API_VERSION
from fleet.api.controller import app_staff, app_public


app = FastAPI(title=API_TITLE, version=API_VERSION)

origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/staff", app_staff, "Staff API")
app.mount("/public", app_public, "Public API")


# Health check endpoint
@app.get("/health", tags=["Health Check"], response_model=schemas.HealthStatus)
async def health_check():
    return {"status": "OK", "version": API_VERSION}
