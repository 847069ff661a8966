"""Module holding constants used across ghclone."""

GRAPHQL_URL = "https://api.github.com/graphql"
GITHUB_API_ACCEPT = "application/vnd.github+json"
USER_AGENT = "ghclone/0.1"
PAGE_SIZE = 100  # GraphQL connection limit
DEFAULT_DEST = "repos"
DEFAULT_MAX_PARALLEL = 4
HTTP_TIMEOUT_SEC = 30.0
GIT_METADATA_DIR = ".git"
