from fastapi import FastAPI

from elasticctl.api.middleware import AuthMiddleware
from elasticctl.api.routes import status

app = FastAPI(title="elasticctl")
app.add_middleware(AuthMiddleware)

app.include_router(status.router)
