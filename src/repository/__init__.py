"""Deploy repository hosting and checkouts."""
