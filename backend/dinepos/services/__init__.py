"""Order engine services.

Everything here runs inside the API process except ``terminal_cache``, which
is the client-side half of the change feed: a terminal embeds it to keep
local copies of the shared collections and apply optimistic removals. The
HTTP API never builds one.
"""
