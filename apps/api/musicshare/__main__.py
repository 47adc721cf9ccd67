import uvicorn

from musicshare.core.settings import Settings


def main() -> None:
    settings = Settings()
    uvicorn.run("musicshare.main:app", host="0.0.0.0", port=settings.API_PORT)


if __name__ == "__main__":
    main()
