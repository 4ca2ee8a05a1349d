import argparse

import uvicorn

from campaign_api.config.loader import load_settings
from campaign_api.config.models import Settings
from campaign_api.main import app


def parse_args(argv: list[str] | None, settings: Settings) -> argparse.Namespace:
    """Parse listen options; defaults come from API_HOST and API_PORT."""
    parser = argparse.ArgumentParser(description="Run the campaign analytics API")
    parser.add_argument(
        "--host", default=settings.host, help=f"Bind address (default: {settings.host})"
    )
    parser.add_argument(
        "--port", type=int, default=settings.port, help=f"Listen port (default: {settings.port})"
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None, run_server: bool = True) -> int:
    """Run the API server or exit successfully for CLI usage."""
    settings = load_settings()
    args = parse_args(argv, settings)
    if run_server:
        uvicorn.run(  # pragma: no cover
            app, host=args.host, port=args.port, log_level=settings.log_level.lower()
        )

    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
