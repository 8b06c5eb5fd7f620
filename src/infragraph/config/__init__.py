"""Configuration -- settings models, TOML discovery, logging setup."""
