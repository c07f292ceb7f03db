"""Allow ``python -m stockmaxwin``."""

from stockmaxwin.cli.main import app

if __name__ == "__main__":
    app()
