import uvicorn

from phone_advisor.config import settings


def main() -> None:
    uvicorn.run(
        "phone_advisor.main:app",
        host=settings.app_host,
        port=settings.app_port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
