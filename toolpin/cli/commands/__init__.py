"""Command implementations for the toolpin CLI; each module exposes run(args, session)."""
