"""SteamLens: Steam profile, library and wishlist aggregation service."""
