"""Runtime support imported by generated wrapper packages."""
