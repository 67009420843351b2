# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real tokens. Put them in .env (local, gitignored).
"""

ENV_VARS = {
    # App / logging
    "PHITODO_APP_NAME": "App display name (default: phitodo).",
    "PHITODO_LOG_LEVEL": "Console logging level (default: INFO). The log file is always DEBUG.",
    "PHITODO_CONSOLE_ENABLED": "Run the console (true/false). false => one sync cycle, then exit.",
    # Paths (gitignored)
    "PHITODO_DATA_DIR": "Local data directory (default: .local/phitodo).",
    "PHITODO_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/phitodo.sqlite3).",
    # GitHub
    "PHITODO_GITHUB_TOKEN": "GitHub personal access token (GITHUB_TOKEN is used as a fallback).",
    "PHITODO_GITHUB_API_BASE": "API base URL (default: https://api.github.com).",
    "PHITODO_GITHUB_REPOS": "Comma/space separated owner/repo list to track (empty => all).",
    "PHITODO_UNTRACKED_REPO_POLICY": (
        "What happens to synced tasks of repos no longer tracked: keep (default) | complete."
    ),
    # Toggl
    "PHITODO_TOGGL_TOKEN": "Toggl Track API token (TOGGL_API_TOKEN is used as a fallback).",
    "PHITODO_TOGGL_API_BASE": "API base URL (default: https://api.track.toggl.com/api/v9).",
    "PHITODO_TOGGL_DAYS": "How many days of time entries to fetch (default: 7).",
    "PHITODO_TOGGL_HIDDEN_PROJECTS": "Comma separated project names left out of the time report.",
    # HTTP
    "PHITODO_HTTP_TIMEOUT_SECONDS": "Per-request read timeout (default: 20).",
}
