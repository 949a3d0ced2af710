# Marks `equiptrack.deps` as a package so `from equiptrack.deps.auth import require_api_key` resolves.
