"""Admin gateway for the merchant review and content site."""
