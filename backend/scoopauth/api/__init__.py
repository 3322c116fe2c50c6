"""ScoopSocials auth HTTP API."""
