"""DocSpace fill & sign backend for the medical portal."""
