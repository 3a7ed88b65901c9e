"""Constants, address derivation, pool access and market configuration."""
