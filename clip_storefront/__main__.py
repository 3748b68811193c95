"""Entry point for running the storefront as a module."""

import argparse
import os
import sys

import uvicorn


def init_db() -> None:
    """Create the schema on the configured service database and exit."""
    from clip_storefront.config import get_config
    from clip_storefront.database import Database
    from clip_storefront.logging_config import configure_from_env

    configure_from_env()
    database = Database.from_settings(get_config().database)
    try:
        database.create_schema()
    finally:
        database.dispose()


def main() -> None:
    """Main entry point for the clip storefront."""
    parser = argparse.ArgumentParser(
        description="Clip Storefront - pay-per-clip checkout, webhook and download service"
    )
    parser.add_argument(
        "--host",
        default=os.getenv("HOST", "0.0.0.0"),
        help="Host to bind to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "8080")),
        help="Port to bind to (default: 8080)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default=os.getenv("LOG_FORMAT", "json"),
        help="Log output format (default: json)",
    )
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", "config/storefront.yaml"),
        help="Path to storefront.yaml configuration file (default: config/storefront.yaml)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        default=os.getenv("RELOAD", "false").lower() == "true",
        help="Enable auto-reload for development (default: false)",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create database tables and exit",
    )

    args = parser.parse_args()

    os.environ["LOG_LEVEL"] = args.log_level
    os.environ["LOG_FORMAT"] = args.log_format
    os.environ["CONFIG_PATH"] = args.config

    if args.init_db:
        try:
            init_db()
        except Exception as e:
            print(f"Failed to initialize database: {e}", file=sys.stderr)
            sys.exit(1)
        return

    if args.log_format == "console":
        print("=" * 60)
        print("Clip Storefront v0.1.0")
        print("=" * 60)
        print(f"Host: {args.host}")
        print(f"Port: {args.port}")
        print(f"Log Level: {args.log_level}")
        print(f"Config: {args.config}")
        print("=" * 60)

    try:
        uvicorn.run(
            "clip_storefront.main:create_app",
            factory=True,
            host=args.host,
            port=args.port,
            log_level=args.log_level.lower(),
            reload=args.reload,
            access_log=False,  # request logging is done by RequestLoggingMiddleware
        )
    except KeyboardInterrupt:
        print("\nShutting down gracefully...")
        sys.exit(0)
    except Exception as e:
        print(f"Failed to start storefront: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
