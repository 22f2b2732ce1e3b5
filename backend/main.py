from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from mangum import Mangum
from config import ENVIRONMENT, LOG_LEVEL
from utils.exceptions import register_exception_handlers
import logging

from routers.auth.auth import router as auth_router
from routers.products.products import router as products_router
from routers.carts.carts import router as carts_router
from routers.wishlist.wishlist import router as wishlist_router
from routers.orders.orders import router as orders_router
from routers.sellers.sellers import router as sellers_router
from routers.admin.admin import router as admin_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

IS_PRODUCTION = ENVIRONMENT == "prod"

app = FastAPI(
    title="MultiCart API",
    description="Multi-vendor marketplace API: catalog, carts, orders with per-seller fulfillment, and seller reporting.",
    version="1.0.0",
    root_path="/Prod" if IS_PRODUCTION else "",
    docs_url="/apidocs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    servers=[
        {"url": "https://your-aws-api.execute-api.region.amazonaws.com/Prod", "description": "Production Server"},
        {"url": "http://localhost:8000", "description": "Local Development Server"},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(auth_router)
app.include_router(products_router)
app.include_router(carts_router)
app.include_router(wishlist_router)
app.include_router(orders_router)
app.include_router(sellers_router)
app.include_router(admin_router)


@app.get("/docs", include_in_schema=False)
async def api_documentation(request: Request):
    openapi_url = "/Prod/openapi.json" if IS_PRODUCTION else "/openapi.json"

    return HTMLResponse(
        f"""
<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1, shrink-to-fit=no">
    <title>MultiCart API DOCS</title>

    <script src="https://unpkg.com/@stoplight/elements/web-components.min.js"></script>
    <link rel="stylesheet" href="https://unpkg.com/@stoplight/elements/styles.min.css">
  </head>
  <body>

    <elements-api
      apiDescriptionUrl="{openapi_url}"
      router="hash"
      theme="dark"
    />

  </body>
</html>"""
    )


@app.get("/", response_class=HTMLResponse, include_in_schema=False)
def home():
    """Landing page with links to the API docs"""
    return """
    <html>
      <head>
        <title>MultiCart API</title>
        <style>
          body { font-family: Arial, sans-serif; margin: 40px; background-color: #f8f9fa; }
          h1 { color: #333; }
          ul { list-style-type: none; padding: 0; }
          li { margin: 10px 0; }
          a { color: #0066cc; text-decoration: none; }
        </style>
      </head>
      <body>
        <h1>Welcome to MultiCart API</h1>
        <hr>
        <ul>
          <li><a href="/docs">Stoplight API Documentation</a></li>
          <li><a href="/redoc">Redoc API Documentation</a></li>
          <li><a href="/apidocs">Swagger API Documentation</a></li>
          <li><a href="/openapi.json">OpenAPI Specification</a></li>
        </ul>
      </body>
    </html>
    """


handler = Mangum(app, lifespan="off")
