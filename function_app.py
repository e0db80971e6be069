"""
Azure Functions entry point.

Serves the same FastAPI app through the Functions ASGI bridge, so routes,
CORS and the submission pipeline behave exactly as under uvicorn.
"""
import azure.functions as func

from main import app as fastapi_app

app = func.AsgiFunctionApp(app=fastapi_app, http_auth_level=func.AuthLevel.ANONYMOUS)
