"""Entry point for Deploy Gate MCP Server."""

import logging
import os

from dotenv import load_dotenv

from .server import create_server


def main():
    """Run the MCP server."""
    load_dotenv()
    # stdout carries the MCP stdio transport, so logs go to stderr
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    server = create_server()
    server.run(transport="stdio")


if __name__ == "__main__":
    main()
