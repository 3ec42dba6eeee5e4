"""Pure rule engines for team membership and event enrollment."""
