"""GitLab MCP Server.

Exposes GitLab REST operations (repositories, issues, merge requests, wikis,
pipelines and runners) as MCP tools, with an optional read-only mode.
"""

__version__ = "0.3.0"
