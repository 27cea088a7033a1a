"""
Run the previz API server.

Usage:
    python -m previz [--host HOST] [--port PORT] [--reload]
"""

import argparse

from previz.api.main import start_server


def main():
    parser = argparse.ArgumentParser(description="Previz storyboard API server")
    parser.add_argument("--host", default=None, help="Bind address")
    parser.add_argument("--port", type=int, default=None, help="Port")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    args = parser.parse_args()
    start_server(host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
