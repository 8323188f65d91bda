import uvicorn

from quizproctor.core import config


def main() -> None:
    uvicorn.run('quizproctor.main:app', host=config.API_HOST, port=config.API_PORT, reload=config.DEBUG)


if __name__ == '__main__':
    main()
