import uvicorn

from app.core.app_factory import create_app

app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="127.0.0.1",
        port=8000,
        log_level="info",
    )
