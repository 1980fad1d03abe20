"""Command-line maintenance tool for pathcache stores."""
