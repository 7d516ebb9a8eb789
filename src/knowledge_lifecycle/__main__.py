"""Entry point for the knowledge-lifecycle MCP server."""

from knowledge_lifecycle.server import create_server


def main() -> None:
    """Run the knowledge-lifecycle MCP server."""
    server = create_server()
    server.run(transport="stdio")


if __name__ == "__main__":
    main()
