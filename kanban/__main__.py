import uvicorn

from .config import configure_logging, settings


def main() -> None:
    configure_logging()
    uvicorn.run("kanban.main:app", host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
