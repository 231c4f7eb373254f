import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from parkit.config import CORS_ORIGINS, LOG_LEVEL, ROOT_PATH
from parkit.database import init_db
from parkit.errors import register_error_handlers
from parkit.routers import lots, reports, sessions, users

logging.basicConfig(level=LOG_LEVEL)

app = FastAPI(
    title="Parkit",
    description="Parking lot entry/exit tracking, billing and reporting.",
    version="1.0.0",
    root_path=ROOT_PATH,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(users.router)
app.include_router(lots.router)
app.include_router(sessions.router)
app.include_router(reports.router)


@app.on_event("startup")
async def on_startup():
    await init_db()


@app.get("/")
async def root():
    return {"success": True, "message": "Welcome to the Parkit API", "docs": "/docs"}


if __name__ == "__main__":
    uvicorn.run("parkit.main:app", host="0.0.0.0", port=8000, reload=True)
