"""
Serverless Entry Point for the SOV Tracker API
Using Mangum for ASGI to AWS Lambda adapter
"""
from mangum import Mangum

from sovtrack.main import app

# Tables are managed outside the function, so the lifespan hook stays off
handler = Mangum(app, lifespan="off")
