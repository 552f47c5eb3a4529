from fastapi import FastAPI

from .routes import include_routers

app = FastAPI(title="Pool Match API")
include_routers(app)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
